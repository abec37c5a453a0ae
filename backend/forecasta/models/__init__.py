from forecasta.models.activity import ActivityLog
from forecasta.models.alert import AlertConfig, ContractorAlert
from forecasta.models.contractor import Lead, LeadPrediction, QCAnalysis
from forecasta.models.demo import Demo
from forecasta.models.integration import Integration, IntegrationRecord, SyncLog
from forecasta.models.snapshot import MonitoringSnapshot

__all__ = [
    "ActivityLog",
    "AlertConfig",
    "ContractorAlert",
    "Demo",
    "Integration",
    "IntegrationRecord",
    "Lead",
    "LeadPrediction",
    "MonitoringSnapshot",
    "QCAnalysis",
    "SyncLog",
]
