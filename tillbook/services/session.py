"""Sign-in and wiring of a ready-to-use ``StoreService``."""

from typing import Callable, Dict, Optional

from .store_service import StoreService
from ..api.auth_client import AuthClient
from ..api.store_client import StoreClient
from ..utils.config import get_config
from ..utils.logger import get_store_logger


def open_store_service(
    email: str,
    password: str,
    notifier: Optional[Callable[[str], None]] = None,
    auth_client: Optional[AuthClient] = None
) -> StoreService:
    """
    Sign in and return a service loaded with the current store contents.

    Raises:
        AuthenticationError: If sign-in fails
        StoreAPIError: If the initial load fails
    """
    logger = get_store_logger()
    auth = auth_client or AuthClient()
    try:
        session = auth.sign_in(email, password)
    finally:
        if auth_client is None:
            auth.close()

    service = StoreService(session=session, notifier=notifier)
    service.refresh()
    logger.info(f"Store service ready for {session.email} ({session.role})")
    return service


def check_connections() -> Dict[str, Dict[str, Optional[object]]]:
    """Check reachability of the store and presence of the Gemini key."""
    config = get_config()
    logger = get_store_logger()
    logger.info("Testing connections...")

    results: Dict[str, Dict[str, Optional[object]]] = {
        "store": {"success": False, "error": None},
        "gemini": {"success": False, "error": None}
    }

    try:
        with StoreClient() as client:
            client.ping()
        results["store"]["success"] = True
        logger.info("✓ Store connection successful")
    except Exception as e:
        results["store"]["error"] = str(e)
        logger.error(f"✗ Store connection failed: {str(e)}")

    if config.env.google_api_key:
        results["gemini"]["success"] = True
    else:
        results["gemini"]["error"] = "GOOGLE_API_KEY is not set"

    return results
