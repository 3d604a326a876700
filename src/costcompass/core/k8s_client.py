import asyncio
import logging
import typing

from kubernetes_asyncio import client, config

from .config import config as app_config

logger = logging.getLogger(__name__)

# Global lock to prevent race conditions during config loading
_CONFIG_LOCK = asyncio.Lock()
_CONFIG_LOADED = False


async def ensure_k8s_config() -> bool:
    """
    Ensures that the Kubernetes configuration is loaded exactly once.

    In-cluster configuration is tried first, then the kubeconfig file at
    KUBECONFIG_PATH (or the client's default location).

    Returns:
        bool: True if config was loaded successfully (or was already loaded), False otherwise.
    """
    global _CONFIG_LOADED

    if _CONFIG_LOADED:
        return True

    async with _CONFIG_LOCK:
        if _CONFIG_LOADED:
            return True

        if not app_config.KUBECONFIG_PATH:
            try:
                logger.debug("Attempting to load in-cluster Kubernetes config...")
                config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes configuration.")
                _CONFIG_LOADED = True
                return True
            except config.ConfigException:
                logger.debug("In-cluster config not found.")
            except Exception as e:
                logger.warning(f"Unexpected error loading in-cluster config: {e}")

        try:
            logger.debug("Attempting to load kubeconfig (%s)...", app_config.KUBECONFIG_PATH or "default location")
            await config.load_kube_config(config_file=app_config.KUBECONFIG_PATH)
            logger.info("Loaded Kubernetes configuration from kubeconfig file.")
            _CONFIG_LOADED = True
            return True
        except config.ConfigException:
            logger.warning("Could not find kubeconfig file.")
        except Exception as e:
            logger.warning(f"Unexpected error loading kubeconfig: {e}")

    logger.warning("Failed to load any Kubernetes configuration.")
    return False


async def get_core_v1_api() -> typing.Optional[client.CoreV1Api]:
    """
    Returns a configured CoreV1Api instance.
    Safe to call concurrently.
    """
    if await ensure_k8s_config():
        return client.CoreV1Api()
    return None


async def get_custom_objects_api() -> typing.Optional[client.CustomObjectsApi]:
    """
    Returns a configured CustomObjectsApi instance, used for metrics.k8s.io.
    """
    if await ensure_k8s_config():
        return client.CustomObjectsApi()
    return None
