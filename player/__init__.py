from .errors import CollaboratorFault, PlayerError, PlayerNotFound, ScenarioFailure
from .poller import ConditionPoller, PollOutcome, PollStatus
from .scenario import ScenarioRunner
from .session import PlayerSession, PlaywrightPlayerSession, launch_session
from .snapshot import PlayerSnapshot, StateSampler
