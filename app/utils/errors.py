"""
Error types and classification helpers shared by connectors, services and routes
"""

from typing import Any, Optional


class AdsOpsError(Exception):
    """Base error for AdsOPS services"""

    code = "internal/error"


class MetaApiError(AdsOpsError):
    """Error payload returned by the Meta Graph API"""

    code = "integration/meta-error"

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        error_type: Optional[str] = None,
        error_subcode: Optional[int] = None,
    ):
        self.api_message = message
        self.error_code = error_code
        self.error_type = error_type
        self.error_subcode = error_subcode
        super().__init__(f"Meta API Error: {message} (Code: {error_code}, Type: {error_type})")


class GoogleAdsApiError(AdsOpsError):
    """Non-2xx response from the Google Ads REST API or Google OAuth"""

    code = "integration/google-error"

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class RateLimitExceeded(AdsOpsError):
    code = "api/rate-limited"


class SyncError(AdsOpsError):
    code = "sync/error"


class TokenDecryptionError(AdsOpsError):
    code = "auth/token-decryption"


class NoAccountsFoundError(AdsOpsError):
    """OAuth succeeded but the user has no ad accounts to connect"""

    code = "integration/no-accounts"

    def __init__(self, message: str = "Nenhuma conta de anúncios encontrada"):
        super().__init__(message)


RLS_ERROR_CODES = ("PGRST116", "42501")
RLS_ERROR_MESSAGES = (
    "policy",
    "row-level security",
    "permission denied",
    "insufficient privilege",
)

USER_MESSAGES = {
    "integration/meta-error": "Erro ao conectar com Meta Ads.",
    "integration/google-error": "Erro ao conectar com Google Ads.",
    "integration/no-accounts": "Nenhuma conta de anúncios encontrada.",
    "integration/oauth-error": "Erro na autenticação OAuth.",
    "auth/token-expired": "Sua sessão expirou. Faça login novamente.",
    "auth/token-decryption": "Não foi possível ler o token salvo. Reconecte a conta.",
    "permission/denied": "Você não tem permissão para esta ação.",
    "api/rate-limited": "Limite de requisições atingido. Tente novamente mais tarde.",
    "api/not-found": "Recurso não encontrado.",
    "api/server-error": "Erro interno do servidor.",
    "sync/error": "Erro ao sincronizar dados.",
    "internal/error": "Erro interno da aplicação.",
}


def is_rls_error(error: Any) -> bool:
    """
    Detect errors caused by row-level security or an expired session JWT.

    Accepts postgrest APIError instances, dicts, or anything with
    `code`/`message` attributes.
    """
    if error is None:
        return False

    if isinstance(error, dict):
        code = error.get("code")
        message = error.get("message")
    else:
        code = getattr(error, "code", None)
        message = getattr(error, "message", None) or str(error)

    if code and str(code) in RLS_ERROR_CODES:
        return True

    message = (message or "").lower()
    return any(fragment in message for fragment in RLS_ERROR_MESSAGES)


def user_message(error: Exception) -> str:
    """Map an exception to a Portuguese message that can be shown to the user"""
    if isinstance(error, NoAccountsFoundError):
        return str(error)

    if is_rls_error(error):
        return USER_MESSAGES["permission/denied"]

    if isinstance(error, MetaApiError) and error.error_code == 190:
        return USER_MESSAGES["auth/token-expired"]

    if isinstance(error, GoogleAdsApiError) and error.status in (401, 403):
        return USER_MESSAGES["auth/token-expired"]

    code = getattr(error, "code", None)
    if isinstance(code, str) and code in USER_MESSAGES:
        return USER_MESSAGES[code]

    return USER_MESSAGES["internal/error"]
