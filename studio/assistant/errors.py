class AssistantError(Exception):
    """Base de los errores del cliente del asistente."""


class ApiError(AssistantError):
    def __init__(self, status_code: int, detail):
        self.status_code = status_code
        self.detail = detail
        if isinstance(detail, dict):
            text = detail.get("message") or str(detail)
        else:
            text = str(detail)
        super().__init__(f"{status_code}: {text}" if status_code else text)


class RequestCancelled(AssistantError):
    pass
