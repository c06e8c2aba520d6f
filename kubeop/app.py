"""Application root for a kubeop-based operator.

Wires components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → event sources (one per
registered controller).

The app is also the supervisor for watch faults: sessions never exit the
process themselves, they emit a FatalStreamFault which lands in
``OperatorApp._on_fatal``. That stops every component and makes ``run()``
report a non-zero exit status, which ``main()`` turns into ``SystemExit``.
A supervising process (the kubelet) restarts the operator and caches are
rebuilt from a consistent baseline.

Shutdown is graceful: event sources are closed in reverse startup order,
each independently, so one failure does not keep the rest open.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable
from typing import TYPE_CHECKING

from kubeop.collector.event_source import CustomResourceEventSource, Dispatcher
from kubeop.collector.transport import KubernetesWatchTransport, WatchTransport
from kubeop.config import load_config
from kubeop.controllers.registry import ConfigurationRegistry
from kubeop.errors import FatalStreamFault
from kubeop.models.config import OperatorConfig
from kubeop.models.controller import ControllerConfiguration
from kubeop.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

TransportFactory = Callable[[ControllerConfiguration], WatchTransport]

_EXIT_FATAL = 1


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class OperatorApp:
    """Owns the registry and event sources and coordinates their lifecycle.

    Controllers are registered before ``start()``; the registry instance is
    created here (or passed in) and shared explicitly, never global.

    ``transport_factory`` replaces the kubernetes-asyncio transport; when it
    is given no Kubernetes client is configured.
    """

    def __init__(
        self,
        registry: ConfigurationRegistry | None = None,
        *,
        config: OperatorConfig | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self.registry = registry if registry is not None else ConfigurationRegistry()
        self.config = config
        self.fatal_fault: FatalStreamFault | None = None

        self._transport_factory = transport_factory
        self._dispatchers: dict[str, Dispatcher] = {}
        self._event_sources: list[CustomResourceEventSource] = []
        self._api_client: object | None = None
        self._shutdown_requested = asyncio.Event()

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def event_sources(self) -> list[CustomResourceEventSource]:
        return list(self._event_sources)

    def register_controller(self, configuration: ControllerConfiguration, dispatcher: Dispatcher) -> None:
        """Register a controller's configuration and the dispatcher it feeds.

        Raises ConfigurationNameCollisionError if the name is already used.
        """
        self.registry.register(configuration)
        self._dispatchers[configuration.name] = dispatcher

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("operator starting", controllers=sorted(self.registry.get_known_controller_names()))

        # --- 3. Kubernetes client ----------------------------------------
        if self._transport_factory is None:
            await self._start_k8s_client()

        # --- 4. Event sources --------------------------------------------
        self._running = True
        for configuration in self.registry.controller_configurations():
            await self._start_event_source(configuration)

        self._log.info("operator started", event_sources=len(self._event_sources))

    async def _start_k8s_client(self) -> None:
        """Initialise the kubernetes-asyncio client from in-cluster config or kubeconfig."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            try:
                k8s_config.load_incluster_config()
                self._log.info("k8s client configured from in-cluster service account")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config()
                self._log.info("k8s client configured from kubeconfig")

            api_client = k8s_client.ApiClient()
            api = k8s_client.CustomObjectsApi(api_client)
            watch_config = self.config.watch

            def _factory(configuration: ControllerConfiguration) -> WatchTransport:
                return KubernetesWatchTransport.for_configuration(
                    api,
                    configuration,
                    default_namespace=watch_config.namespace,
                    timeout_seconds=watch_config.timeout_seconds,
                )

            self._api_client = api_client
            self._transport_factory = _factory
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_event_source(self, configuration: ControllerConfiguration) -> None:
        assert self._log is not None
        assert self._transport_factory is not None
        dispatcher = self._dispatchers.get(configuration.name)
        if dispatcher is None:
            self._log.warning("no dispatcher for registered controller; skipping", controller=configuration.name)
            return
        self._log.debug("starting event source", controller=configuration.name)
        try:
            source = CustomResourceEventSource(
                self._transport_factory(configuration),
                configuration,
                dispatcher,
                on_fatal=self._on_fatal,
            )
            await source.start()
            self._event_sources.append(source)
            self._log.info(
                "event source started",
                controller=configuration.name,
                generation_aware=configuration.generation_aware,
                finalizer=configuration.finalizer_name,
            )
        except Exception as exc:
            raise _ComponentError(f"event_source:{configuration.name}", exc) from exc

    # ------------------------------------------------------------------
    # Fault supervision
    # ------------------------------------------------------------------

    def _on_fatal(self, fault: FatalStreamFault) -> None:
        """Receive a fatal watch fault; the first one wins."""
        log = self._log or get_logger("app")
        if self.fatal_fault is None:
            self.fatal_fault = fault
        log.critical(
            "fatal watch fault; operator will exit",
            controller=fault.source,
            scope=str(fault.scope),
            error=str(fault.error),
        )
        self.request_shutdown()

    def request_shutdown(self) -> None:
        self._shutdown_requested.set()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Close all event sources in reverse startup order.

        Calling stop() on an app that never started, or twice, is safe.
        """
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("operator shutting down")
        self._running = False

        grace = self.config.shutdown_grace_seconds if self.config is not None else 15
        for source in reversed(self._event_sources):
            await self._stop_component(source.configuration.name, source, grace)
        self._event_sources.clear()

        await self._stop_k8s_client()
        log.info("operator stopped")

    async def _stop_component(self, name: str, source: CustomResourceEventSource, grace: int) -> None:
        log = self._log or get_logger("app")
        try:
            await asyncio.wait_for(source.close(), timeout=grace)
        except TimeoutError:
            log.warning("event source close timed out", controller=name, timeout=grace)
        except Exception as exc:
            log.error("event source close raised an error", controller=name, error=str(exc))

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        api_client, self._api_client = self._api_client, None
        if api_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await api_client.close()  # type: ignore[attr-defined]
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """Start, block until shutdown is requested, stop. Returns the exit status."""
        try:
            await self.start()
            await self._shutdown_requested.wait()
        except _ComponentError as exc:
            log = self._log or get_logger("app")
            log.critical("fatal startup error", component=exc.component, error=str(exc.cause))
            await self.stop()
            return _EXIT_FATAL
        finally:
            if self._running:
                await self.stop()
        return _EXIT_FATAL if self.fatal_fault is not None else 0


async def main(app: OperatorApp) -> None:
    """Register OS signals and run *app* until shutdown; exit non-zero on fatal faults."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, app.request_shutdown)

    exit_code = await app.run()
    if exit_code:
        raise SystemExit(exit_code)
