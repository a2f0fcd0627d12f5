"""
Exceptions raised by the ets_article package
"""


class EtsArticleError(Exception):
    """Base exception for the article tooling"""
    pass


class DatasetError(EtsArticleError):
    """Raised when a dataset cannot be resolved, fetched or parsed"""
    pass


class ModelFittingError(EtsArticleError):
    """Raised when an external fitting routine fails"""

    def __init__(self, model_name: str, reason: str = None):
        self.model_name = model_name
        self.reason = reason

        message = f"Failed to fit {model_name} model"
        if reason:
            message += f": {reason}"

        super().__init__(message)


class ContentError(EtsArticleError):
    """Raised when article metadata or content is malformed"""
    pass
