import importlib
import logging
import pkgutil

logger = logging.getLogger(__name__)


def include_routers(app, package_name, package_path):
    """app/<package_name> 아래에서 router를 가진 모듈을 모두 등록"""
    for _, module_name, _ in pkgutil.iter_modules(package_path):
        module = importlib.import_module(f"app.{package_name}.{module_name}")
        router = getattr(module, "router", None)
        if router is not None:
            app.include_router(router)
            logger.debug(f"Router registered: {module_name} ({len(router.routes)} routes)")
