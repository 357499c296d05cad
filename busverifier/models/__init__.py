from busverifier.models.business import User, UploadBatch, ProcessingJob, BusinessRecord  # noqa: F401
