from .extractor import ResponseExtractor
from .orchestrator import PollingPolicy, RunOrchestrator
from .outcome import translate
from .provisioner import ThreadProvisioner
from .service import ConversationRelay
from .submitter import MessageSubmitter

__all__ = [
    "ConversationRelay",
    "MessageSubmitter",
    "PollingPolicy",
    "ResponseExtractor",
    "RunOrchestrator",
    "ThreadProvisioner",
    "translate",
]
