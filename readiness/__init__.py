"""
Token Launch Readiness.

============================================================
PURPOSE
============================================================
Decides whether a user may launch a token now, why, and what
must be fixed if not.

============================================================
FLOW
============================================================

ReadinessRequest
    |
    v
ReadinessAggregator  (entitlement, account, KYC/AML,
    |                 compliance?, integration? in parallel)
    v
ReadinessResponse ---> EvidenceStore (best-effort)
    |
    v
ReadinessScorer      (weights, confidence, blocking conditions)
    |
    v
ReadinessResponseV2

============================================================
USAGE
============================================================

```python
from readiness import (
    ReadinessAggregator,
    LifecycleReadinessService,
    ReadinessRequest,
)

aggregator = ReadinessAggregator(
    entitlement_engine=entitlements,
    account_probe=account_probe,
    kyc_provider=kyc_provider,
)
service = LifecycleReadinessService(aggregator)

report = await service.evaluate_readiness_v2(
    ReadinessRequest(user_id="user-1", token_type="ASA")
)
if not report.can_proceed:
    for task in report.remediation_tasks:
        print(task.severity.label, task.description)
```

============================================================
"""

from .types import (
    ReadinessStatus,
    BlockerCategory,
    RemediationSeverity,
    CategoryKind,
    AccountReadinessState,
    KycStatus,
    DataFreshness,
    EvidenceType,
    AccountReadinessResult,
    KycStatusResult,
    ComplianceStatus,
    IntegrationHealth,
    ReadinessRequest,
    CategoryEvaluationResult,
    ReadinessEvaluationDetails,
    RemediationTask,
    ReadinessResponse,
    ReadinessFactorBreakdown,
    ReadinessScore,
    BlockingCondition,
    ConfidenceMetadata,
    ScoringResult,
    EvidenceReference,
    EvidenceRetrievalResponse,
    ReadinessResponseV2,
)
from .config import (
    ReadinessConfig,
    FactorDefinition,
    FACTOR_DEFINITIONS,
    CANONICAL_FACTOR_IDS,
    REMEDIATION_POLICIES,
    POLICY_VERSION,
    SCORING_VERSION,
    get_default_readiness_config,
)
from .sources import (
    AccountReadinessProbe,
    KycStatusProvider,
    ComplianceDecisionProvider,
    IntegrationHealthProbe,
    InMemoryAccountReadinessProbe,
    InMemoryKycStatusProvider,
    InMemoryComplianceDecisionProvider,
    StaticIntegrationHealthProbe,
)
from .evidence import (
    ReadinessEvidence,
    EvidenceStore,
    InMemoryEvidenceStore,
    compute_data_hash,
)
from .alerting import (
    ReadinessAlert,
    AlertSender,
    ConsoleAlertSender,
    WebhookAlertSender,
    AlertRateLimiter,
    ReadinessAlerter,
)
from .aggregator import (
    ReadinessAggregator,
    determine_status,
    generate_remediation_tasks,
    build_summary,
    create_readiness_aggregator,
)
from .scorer import ReadinessScorer
from .lifecycle import LifecycleReadinessService


__all__ = [
    # Types
    "ReadinessStatus",
    "BlockerCategory",
    "RemediationSeverity",
    "CategoryKind",
    "AccountReadinessState",
    "KycStatus",
    "DataFreshness",
    "EvidenceType",
    "AccountReadinessResult",
    "KycStatusResult",
    "ComplianceStatus",
    "IntegrationHealth",
    "ReadinessRequest",
    "CategoryEvaluationResult",
    "ReadinessEvaluationDetails",
    "RemediationTask",
    "ReadinessResponse",
    "ReadinessFactorBreakdown",
    "ReadinessScore",
    "BlockingCondition",
    "ConfidenceMetadata",
    "ScoringResult",
    "EvidenceReference",
    "EvidenceRetrievalResponse",
    "ReadinessResponseV2",
    # Config
    "ReadinessConfig",
    "FactorDefinition",
    "FACTOR_DEFINITIONS",
    "CANONICAL_FACTOR_IDS",
    "REMEDIATION_POLICIES",
    "POLICY_VERSION",
    "SCORING_VERSION",
    "get_default_readiness_config",
    # Sources
    "AccountReadinessProbe",
    "KycStatusProvider",
    "ComplianceDecisionProvider",
    "IntegrationHealthProbe",
    "InMemoryAccountReadinessProbe",
    "InMemoryKycStatusProvider",
    "InMemoryComplianceDecisionProvider",
    "StaticIntegrationHealthProbe",
    # Evidence
    "ReadinessEvidence",
    "EvidenceStore",
    "InMemoryEvidenceStore",
    "compute_data_hash",
    # Alerting
    "ReadinessAlert",
    "AlertSender",
    "ConsoleAlertSender",
    "WebhookAlertSender",
    "AlertRateLimiter",
    "ReadinessAlerter",
    # Services
    "ReadinessAggregator",
    "determine_status",
    "generate_remediation_tasks",
    "build_summary",
    "create_readiness_aggregator",
    "ReadinessScorer",
    "LifecycleReadinessService",
]

__version__ = "1.0.0"
