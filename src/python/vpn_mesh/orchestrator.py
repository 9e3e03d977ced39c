"""Mesh orchestration: build the step graph, then run it pair by pair."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Mapping, Optional

from .builders import AwsConnectionBuilder, create_gateway_factory, create_tunnel_builder
from .config import MeshConfig
from .deriver import derive
from .engine import ProvisioningEngine
from .errors import DependencyNotReadyError, MeshError
from .graph import DependencyGraph, Step
from .models import (
    MeshResult,
    Pair,
    PairResult,
    PairState,
    Provider,
    RouteAdvertisement,
    TunnelInstance,
)

LOG = logging.getLogger(__name__)


def gateway_step(provider: Provider) -> str:
    return f"gateway:{provider.value}"


def pair_step(pair: Pair, stage: str) -> str:
    return f"{pair.key}:{stage}"


class MeshOrchestrator:
    """Sequences gateway, parameter, tunnel and route creation for every enabled pair.

    The whole plan is expressed as a :class:`DependencyGraph` and validated
    before the first resource request is issued.  Running it walks the graph
    in topological order; a failed step marks its dependents as skipped, so a
    broken pair never blocks unrelated pairs.
    """

    def __init__(self, config: MeshConfig, engine: ProvisioningEngine) -> None:
        self.config = config
        self.engine = engine

    @property
    def topology(self):
        return self.config.topology

    def plan(self) -> DependencyGraph:
        """Build and validate the step graph for the configured mesh."""
        graph = DependencyGraph()
        for provider in self.config.matrix.participants():
            graph.add(Step(gateway_step(provider), self._gateway(provider)))

        for pair in self.config.matrix.enabled_pairs():
            if pair.has_aws:
                self._plan_aws_pair(graph, pair)
            else:
                self._plan_peer_pair(graph, pair)

        graph.validate()
        return graph

    def run(self) -> MeshResult:
        """Execute the plan.

        Returns:
            MeshResult with one PairResult per enabled pair; pairs that failed
            stay in their last successful state and carry the error

        Raises:
            DependencyNotReadyError: If a step runs before its inputs exist
        """
        graph = self.plan()
        result = MeshResult(topology=self.topology)
        for pair in self.config.matrix.enabled_pairs():
            result.pairs[pair.key] = PairResult(pair=pair, topology=self.topology)

        LOG.info(
            "Running %s mesh: %d steps, pairs %s",
            self.topology.value,
            len(graph),
            ", ".join(result.pairs) or "none",
        )

        outputs: dict[str, Any] = {}
        skipped: set[str] = set()
        for step in graph.order():
            if step.key in skipped:
                LOG.debug("Skipping %s", step.key)
                continue

            pair_result = result.pairs[step.pair.key] if step.pair else None
            if pair_result is not None and pair_result.state is PairState.PENDING:
                self._advance(pair_result, PairState.GATEWAYS_READY)

            try:
                output = step.run({key: outputs[key] for key in step.depends_on})
            except DependencyNotReadyError:
                raise
            except MeshError as e:
                LOG.error("Step %s failed: %s", step.key, e)
                self._fail(graph, step, e, result)
                skipped.update(graph.descendants(step.key))
                continue

            outputs[step.key] = output
            if pair_result is None:
                provider = Provider(step.key.split(":", 1)[1])
                result.gateways[provider] = output
                continue

            self._record(pair_result, step.key.rsplit(":", 1)[1], output)
            if step.state is not None:
                self._advance(pair_result, step.state)

        incomplete = result.incomplete_pairs()
        if incomplete:
            LOG.warning("Incomplete pairs: %s", ", ".join(r.pair.key for r in incomplete))
        else:
            LOG.info("All %d pairs linked", len(result.pairs))
        return result

    def _fail(self, graph: DependencyGraph, step: Step, error: Exception, result: MeshResult) -> None:
        if step.pair is None:
            provider = Provider(step.key.split(":", 1)[1])
            result.gateway_errors[provider] = error
            affected = {graph[key].pair for key in graph.descendants(step.key) if graph[key].pair}
        else:
            affected = {step.pair}

        for pair in affected:
            pair_result = result.pairs[pair.key]
            if pair_result.error is None:
                pair_result.error = error

    @staticmethod
    def _advance(pair_result: PairResult, state: PairState) -> None:
        pair_result.advance(state)
        LOG.info("%s: %s", pair_result.pair.key, state.value)

    @staticmethod
    def _record(pair_result: PairResult, stage: str, output: Any) -> None:
        if stage == "aws-parameters":
            pair_result.parameters[Provider.AWS] = output
        elif stage == "aws-connections":
            pair_result.connections = output
        elif stage == "parameters":
            pair_result.parameters.update(output)
        elif stage == "tunnels":
            pair_result.tunnels.extend(ipsec_tunnels(pair_result.pair, output))
        elif stage in ("routes", "peers"):
            pair_result.routes.extend(output)

    # Steps

    def _gateway(self, provider: Provider) -> Callable[[Mapping[str, Any]], Any]:
        def run(inputs):
            LOG.info("Creating %s gateway (%s)", provider.value, self.topology.value)
            return create_gateway_factory(provider, self.config, self.engine).create()

        return run

    def _tunnel_builder(self, provider: Provider, inputs: Mapping[str, Any]):
        return create_tunnel_builder(provider, self.config, self.engine, inputs[gateway_step(provider)])

    def _plan_aws_pair(self, graph: DependencyGraph, pair: Pair) -> None:
        """AWS builds its VPN connections first; the peer reads the tunnel endpoints they expose."""
        peer = pair.other(Provider.AWS)
        aws_gateway = gateway_step(Provider.AWS)
        peer_gateway = gateway_step(peer)
        aws_parameters = pair_step(pair, "aws-parameters")
        connections = pair_step(pair, "aws-connections")
        parameters = pair_step(pair, "parameters")
        tunnels = pair_step(pair, "tunnels")

        def derive_aws(inputs):
            return derive(inputs[peer_gateway], Provider.AWS, pair, self.config)

        def build_connections(inputs):
            builder = AwsConnectionBuilder(self.config, self.engine)
            return builder.build(inputs[aws_gateway], inputs[aws_parameters])

        def derive_peer(inputs):
            return {peer: derive(inputs[connections], peer, pair, self.config)}

        def build_tunnels(inputs):
            builder = self._tunnel_builder(peer, inputs)
            return {peer: builder.build_tunnels(inputs[parameters][peer])}

        graph.add(Step(aws_parameters, derive_aws, (aws_gateway, peer_gateway), pair))
        graph.add(Step(connections, build_connections, (aws_gateway, aws_parameters), pair))
        graph.add(Step(parameters, derive_peer, (connections,), pair, PairState.PARAMETERS_DERIVED))
        graph.add(Step(tunnels, build_tunnels, (peer_gateway, parameters), pair, PairState.TUNNELS_CREATED))

        if self.topology.uses_bgp:
            # AWS VPN connections run BGP on their own; only the peer binds sessions
            self._plan_bgp(graph, pair, (peer,))
        else:
            self._plan_static(graph, pair, (peer,), aws=True)

    def _plan_peer_pair(self, graph: DependencyGraph, pair: Pair) -> None:
        """Both sides read each other's gateway outputs directly."""
        providers = (pair.first, pair.second)
        gateways = tuple(gateway_step(p) for p in providers)
        parameters = pair_step(pair, "parameters")
        tunnels = pair_step(pair, "tunnels")

        def derive_both(inputs):
            return {
                target: derive(inputs[gateway_step(pair.other(target))], target, pair, self.config)
                for target in providers
            }

        def build_tunnels(inputs):
            return {
                provider: self._tunnel_builder(provider, inputs).build_tunnels(inputs[parameters][provider])
                for provider in providers
            }

        graph.add(Step(parameters, derive_both, gateways, pair, PairState.PARAMETERS_DERIVED))
        graph.add(Step(tunnels, build_tunnels, (*gateways, parameters), pair, PairState.TUNNELS_CREATED))

        if self.topology.uses_bgp:
            self._plan_bgp(graph, pair, providers)
        else:
            self._plan_static(graph, pair, providers)

    def _plan_static(self, graph: DependencyGraph, pair: Pair, providers, aws: bool = False) -> None:
        gateways = tuple(gateway_step(p) for p in providers)
        parameters = pair_step(pair, "parameters")
        tunnels = pair_step(pair, "tunnels")
        routes = pair_step(pair, "routes")
        connections = pair_step(pair, "aws-connections")

        def build_routes(inputs):
            advertisements: list[RouteAdvertisement] = []
            for provider in providers:
                builder = self._tunnel_builder(provider, inputs)
                advertisements.extend(builder.build_routes(inputs[tunnels][provider], inputs[parameters][provider]))
            if aws:
                peer = pair.other(Provider.AWS)
                builder = AwsConnectionBuilder(self.config, self.engine)
                advertisements.extend(builder.build_static_routes(inputs[connections], self._aws_destinations(peer)))
            return advertisements

        depends_on = (*gateways, parameters, tunnels) + ((connections,) if aws else ())
        graph.add(Step(routes, build_routes, depends_on, pair, PairState.ROUTES_CREATED))
        graph.add(Step(pair_step(pair, "linked"), _linked, (routes,), pair, PairState.LINKED))

    def _plan_bgp(self, graph: DependencyGraph, pair: Pair, providers) -> None:
        gateways = tuple(gateway_step(p) for p in providers)
        parameters = pair_step(pair, "parameters")
        tunnels = pair_step(pair, "tunnels")
        interfaces = pair_step(pair, "interfaces")
        peers = pair_step(pair, "peers")

        def build_interfaces(inputs):
            return {
                provider: self._tunnel_builder(provider, inputs).build_interfaces(
                    inputs[tunnels][provider], inputs[parameters][provider]
                )
                for provider in providers
            }

        def build_peers(inputs):
            advertisements: list[RouteAdvertisement] = []
            for provider in providers:
                builder = self._tunnel_builder(provider, inputs)
                advertisements.extend(
                    builder.build_peers(
                        inputs[interfaces][provider],
                        inputs[tunnels][provider],
                        inputs[parameters][provider],
                    )
                )
            return advertisements

        graph.add(
            Step(interfaces, build_interfaces, (*gateways, parameters, tunnels), pair, PairState.INTERFACES_CREATED)
        )
        graph.add(
            Step(peers, build_peers, (*gateways, parameters, tunnels, interfaces), pair, PairState.PEERS_CREATED)
        )
        graph.add(Step(pair_step(pair, "linked"), _linked, (peers,), pair, PairState.LINKED))

    def _aws_destinations(self, peer: Provider) -> list[str]:
        """Peer CIDR plus the auxiliary ranges that must traverse the same tunnel."""
        destinations = [self.config.network(peer).cidr]
        if peer is Provider.GOOGLE:
            destinations.extend(self.config.google.custom_ip_ranges)
        return destinations


def ipsec_tunnels(pair: Pair, created: Mapping[Provider, list[TunnelInstance]]) -> list[TunnelInstance]:
    """One TunnelInstance per IPsec tunnel of ``pair``.

    AWS pairs only build tunnels on the peer side.  When both sides build
    one (Google-Azure), the first provider's instance stands for the tunnel
    and carries the far side's resources as supporting handles.
    """
    if len(created) == 1:
        return list(next(iter(created.values())))

    far = {tunnel.index: tunnel for tunnel in created[pair.second]}
    tunnels = []
    for tunnel in created[pair.first]:
        other = far.get(tunnel.index)
        if other is None:
            raise DependencyNotReadyError(
                f"{pair.second.value} has no tunnel {tunnel.index} toward {pair.first.value}"
            )
        tunnels.append(replace(tunnel, supporting=(*tunnel.supporting, other.handle, *other.supporting)))
    return tunnels


def _linked(inputs: Mapping[str, Any]) -> Optional[Any]:
    return None


def run_mesh(config: MeshConfig, engine: ProvisioningEngine) -> MeshResult:
    """Convenience wrapper used by the CLI and the Pulumi program."""
    return MeshOrchestrator(config, engine).run()
