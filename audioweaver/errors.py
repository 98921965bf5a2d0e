"""Exception hierarchy shared by the store, collaborators and pipeline."""


class AudioWeaverError(Exception):
    """Base class for all application errors."""


class StorageError(AudioWeaverError):
    """The job store is unavailable or a read/write failed."""


class ConfigurationError(AudioWeaverError):
    """A required credential or setting is missing."""


class PipelineError(AudioWeaverError):
    """A stage-level condition that fails the whole job."""


class CollaboratorError(AudioWeaverError):
    """An external capability (extraction, summarization, speech) failed."""


class ExtractionError(CollaboratorError):
    pass


class SummarizationError(CollaboratorError):
    pass


class SynthesisError(CollaboratorError):
    pass
