"""
HTTP клиент для реальной интеграции с налоговым органом
"""
import asyncio
from typing import Any, Dict, Optional

import requests

from fiscal_service.core.enums import DocumentType
from fiscal_service.core.exceptions import (
    AuthorityUnavailableError,
    ConfigurationError,
    MalformedAuthorityResponseError
)
from fiscal_service.infrastructure.authority_clients.base_client import (
    AuthorityOutcome,
    AuthorityRequest,
    BaseAuthorityClient
)
from fiscal_service.core.logging import get_logger

logger = get_logger(__name__)

ENDPOINTS = {
    DocumentType.GOODS_INVOICE: "emit-nfe",
    DocumentType.SERVICE_INVOICE: "emit-nfse",
}


class HttpAuthorityClient(BaseAuthorityClient):
    """
    Клиент интеграционного шлюза налогового органа (live)

    Блокирующий requests выполняется в пуле потоков, чтобы
    не останавливать event loop.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        """
        Args:
            base_url: Базовый URL шлюза
            api_key: Ключ доступа к шлюзу
            timeout_seconds: Таймаут HTTP запроса
            session: Готовая сессия requests (для тестов)
        """
        if not base_url:
            raise ConfigurationError("AUTHORITY_BASE_URL is required for live authority mode")

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

        logger.info(
            "Live authority client configured",
            base_url=self.base_url,
            timeout_seconds=timeout_seconds
        )

    async def submit(self, request: AuthorityRequest) -> AuthorityOutcome:
        """Отправить документ в шлюз и разобрать ответ"""
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, self._post, request)
        return self._parse_response(request, response)

    def _post(self, request: AuthorityRequest) -> requests.Response:
        url = f"{self.base_url}/{ENDPOINTS[request.document_type]}"
        try:
            return self.session.post(
                url,
                json=request.to_payload(),
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as e:
            raise AuthorityUnavailableError(
                "Authority request timed out",
                details={"url": url, "error": str(e)}
            )
        except requests.RequestException as e:
            raise AuthorityUnavailableError(
                f"Authority request failed: {str(e)}",
                details={"url": url, "error": str(e)}
            )

    def _parse_response(
        self,
        request: AuthorityRequest,
        response: requests.Response
    ) -> AuthorityOutcome:
        # Отказ органа приходит только как 2xx {"status": "rejected"};
        # 4xx {"error": ...} - сбой самого шлюза, документ до органа не дошёл
        if not 200 <= response.status_code < 300:
            details = {"status_code": response.status_code}
            gateway_error = self._gateway_error(response)
            if gateway_error:
                details["error"] = gateway_error
            raise AuthorityUnavailableError(
                f"Authority gateway returned HTTP {response.status_code}",
                details=details
            )

        body = self._json_body(response)

        status = body.get("status")
        if status == "authorized":
            xml_url, pdf_url = body.get("xml_url"), body.get("pdf_url")
            if not xml_url or not pdf_url:
                raise MalformedAuthorityResponseError(
                    "Authorization acknowledgment without document references",
                    details={"attempt_id": request.attempt_id}
                )
            return AuthorityOutcome.authorize(
                external_document_ref=xml_url,
                external_render_ref=pdf_url,
                message=body.get("message")
            )

        if status == "rejected":
            reason = body.get("reason") or body.get("message")
            if not reason:
                raise MalformedAuthorityResponseError(
                    "Authority rejection without reason",
                    details={"attempt_id": request.attempt_id}
                )
            return AuthorityOutcome.reject(str(reason))

        raise MalformedAuthorityResponseError(
            f"Unknown authority status: {status!r}",
            details={"attempt_id": request.attempt_id}
        )

    @staticmethod
    def _gateway_error(response: requests.Response) -> Optional[str]:
        """Текст {"error": ...} из ответа шлюза, если он есть"""
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return None

    @staticmethod
    def _json_body(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise MalformedAuthorityResponseError(
                "Authority response is not valid JSON",
                details={"status_code": response.status_code, "error": str(e)}
            )
        if not isinstance(body, dict):
            raise MalformedAuthorityResponseError(
                "Authority response is not a JSON object",
                details={"status_code": response.status_code}
            )
        return body

    def is_available(self) -> bool:
        return bool(self.base_url and self.api_key)

    def cleanup(self) -> None:
        logger.info("Closing authority HTTP session")
        self.session.close()
