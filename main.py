import asyncio
import importlib
import pkgutil
from pathlib import Path
from typing import Any

from pydantic import ValidationError

import services.error as error  # installs global uncaught-exception hook
import services.logger as log
import services.util as u
import services.config_io as config_io
from services.config_schema import ResolverConfig
from services.pipeline import MagnetPipeline

import drivers as _drivers_pkg

l = log.get_logger()

# Config section holding the resolver settings; every other top-level
# section names a driver platform.
RESOLVER_SECTION = "resolver"


def _load_all_drivers() -> None:
    """Import every module in ``drivers/`` so each one registers itself."""
    for _, mod_name, _ in pkgutil.iter_modules(_drivers_pkg.__path__):
        if mod_name != "registry":
            importlib.import_module(f"drivers.{mod_name}")


def load_settings(raw: dict[str, Any], registry: dict[str, tuple[type, type]]):
    """Validate the resolver section and every driver instance.

    Returns ``(resolver_config, {platform: {instance_id: config}})`` or
    ``None`` after logging every validation error found.
    """
    ok = True
    try:
        resolver_cfg = ResolverConfig.model_validate(raw.get(RESOLVER_SECTION) or {})
    except ValidationError as exc:
        l.critical(f"Config error in {RESOLVER_SECTION}:\n{exc}")
        resolver_cfg = None
        ok = False

    instances: dict[str, dict[str, Any]] = {}
    for platform, (config_cls, _) in registry.items():
        for inst_id, inst_raw in (raw.get(platform) or {}).items():
            try:
                instances.setdefault(platform, {})[inst_id] = config_cls.model_validate(inst_raw)
            except ValidationError as exc:
                l.critical(f"Config error in {platform}.{inst_id}:\n{exc}")
                ok = False

    unknown = set(raw) - set(registry) - {RESOLVER_SECTION}
    if unknown:
        l.warning(f"Ignoring unknown config sections: {', '.join(sorted(unknown))}")

    return (resolver_cfg, instances) if ok else None


def _on_task_done(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        l.error(f"Driver '{task.get_name()}' crashed: {exc}")


async def run_drivers(driver_tasks: list[asyncio.Task]) -> None:
    try:
        results = await asyncio.gather(*driver_tasks, return_exceptions=True)
        for task, result in zip(driver_tasks, results):
            if isinstance(result, Exception):
                l.error(f"Driver '{task.get_name()}' exited with error: {result}")
    except asyncio.CancelledError:
        l.info("Magnet resolver shutting down…")
        for task in driver_tasks:
            task.cancel()
        await asyncio.gather(*driver_tasks, return_exceptions=True)
        l.info("Magnet resolver stopped.")


async def main():
    asyncio.get_running_loop().set_exception_handler(error.handle_loop_exception)
    l.info(f"Writing logs to {log.enable_file_logging()}")

    _load_all_drivers()
    from drivers.registry import all_drivers

    data_path = Path(u.get_data_path())
    config_path = config_io.find_config(data_path)
    if config_path is None:
        l.critical(f"No config file found in: {data_path} (tried config.json / .yaml / .toml)")
        return

    l.info(f"Loading config from: {config_path}")
    raw: dict = config_io.load_config(config_path)
    log.register_sensitive(config_io.collect_sensitive(raw))

    registry = all_drivers()
    settings = load_settings(raw, registry)
    if settings is None:
        return
    resolver_cfg, instances = settings
    log.set_debug(resolver_cfg.debug_mode)

    pipeline = MagnetPipeline(resolver_cfg)
    driver_tasks: list[asyncio.Task] = []
    for platform, (_, driver_cls) in registry.items():
        for inst_id, cfg in instances.get(platform, {}).items():
            drv = driver_cls(inst_id, cfg, pipeline)
            task = asyncio.create_task(drv.start(), name=f"{platform}/{inst_id}")
            task.add_done_callback(_on_task_done)
            driver_tasks.append(task)
            l.info(f"Started driver: {platform}/{inst_id}")

    try:
        if driver_tasks:
            await run_drivers(driver_tasks)
        else:
            l.error("No drivers configured, nothing to do, exiting.")
    finally:
        await pipeline.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
