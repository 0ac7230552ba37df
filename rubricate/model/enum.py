import enum


class DeploymentEnvironment(enum.Enum):
    Production = "production"
    Development = "development"
    Staging = "staging"
    Sandbox = "sandbox"
    Test = "test"
    Local = "local"


class SubmissionStatus(enum.Enum):
    Received = "received"
    Processing = "processing"
    Analyzed = "analyzed"
    Rejected = "rejected"


class AnalysisState(enum.Enum):
    Created = "created"
    Running = "running"
    Completed = "completed"


class AnalysisStatus(enum.Enum):
    """Overall verdict of one rubric analysis."""

    Pass = "PASS"
    Fail = "FAIL"
    Partial = "PARTIAL"


class AchievementLevel(enum.Enum):
    """Per-criterion achievement level, worth 100/75/50/25% of the criterion max score."""

    Satisfactory = "SATISFACTORIO"
    Good = "BUENO"
    Fair = "REGULAR"
    Unsatisfactory = "INSATISFACTORIO"


class ProviderType(enum.Enum):
    """Supported LLM providers; the value is recorded as an analysis engine."""

    OpenAI = "openai"
    Anthropic = "anthropic"
    Google = "google"
