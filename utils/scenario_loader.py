"""
Scenario Loader for the Hybrid Scheduling & Deadlock Simulator.

Loads JSON scenario files and validates process/resource specifications
before any simulation state is built.
"""

import json
from typing import Dict, List, Any, Sequence, Tuple

from models.errors import ConfigurationError
from models.process import Process, ProcessSpec, ProcessTable
from models.resource import ResourceRegistry, ResourceSpec
from models.system_state import SimulationState
from algorithms.dispatcher import DEFAULT_QUANTUM


class ScenarioLoadError(ConfigurationError):
    """Exception raised when scenario file cannot be loaded or is invalid."""
    pass


def load_scenario(file_path: str) -> Tuple[List[ProcessSpec], List[ResourceSpec], int]:
    """
    Load scenario from JSON file.

    Args:
        file_path: Path to scenario JSON file

    Returns:
        Tuple of (process specs, resource specs, quantum)

    Raises:
        ScenarioLoadError: If file cannot be loaded or is malformed
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ScenarioLoadError(f"Scenario file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ScenarioLoadError(f"Invalid JSON in scenario file: {e}")

    if not isinstance(data, dict):
        raise ScenarioLoadError("Scenario must be a JSON object")
    if 'processes' not in data:
        raise ScenarioLoadError("Scenario missing 'processes' field")

    resources = [_load_resource(i, res) for i, res in enumerate(data.get('resources', []))]
    processes = [_load_process(i, proc) for i, proc in enumerate(data['processes'])]
    quantum = data.get('quantum', DEFAULT_QUANTUM)
    if not _is_integer(quantum):
        raise ScenarioLoadError(f"'quantum' must be an integer (got {quantum!r})")

    return processes, resources, quantum


def _load_resource(index: int, res: Dict[str, Any]) -> ResourceSpec:
    """
    Load a resource definition. The id defaults to the list position.
    """
    if 'total' not in res:
        raise ScenarioLoadError(f"Resource #{index} missing 'total' field")
    return ResourceSpec(
        rid=_integer_field(res, 'rid', index, f"Resource #{index}"),
        total=_integer_field(res, 'total', None, f"Resource #{index}"),
    )


def _load_process(index: int, proc: Dict[str, Any]) -> ProcessSpec:
    """
    Load a single process definition. The pid defaults to the list position.

    Args:
        index: Position in the scenario's process list
        proc: Process dictionary from scenario

    Returns:
        ProcessSpec
    """
    required_fields = ['arrival', 'burst', 'priority']
    for name in required_fields:
        if name not in proc:
            raise ScenarioLoadError(f"Process #{index} missing required field: {name}")

    where = f"Process #{index}"
    requested = proc.get('requested_resources', [])
    if not isinstance(requested, list) or not all(_is_integer(rid) for rid in requested):
        raise ScenarioLoadError(f"{where}: 'requested_resources' must be a list of integers")

    return ProcessSpec(
        pid=_integer_field(proc, 'pid', index, where),
        arrival=_integer_field(proc, 'arrival', None, where),
        burst=_integer_field(proc, 'burst', None, where),
        priority=_integer_field(proc, 'priority', None, where),
        requested_resources=list(requested),
    )


def _is_integer(value: Any) -> bool:
    # bool is an int subclass; JSON true/false is not a count
    return isinstance(value, int) and not isinstance(value, bool)


def _integer_field(entry: Dict[str, Any], name: str, default: Any, where: str) -> int:
    value = entry.get(name, default)
    if not _is_integer(value):
        raise ScenarioLoadError(f"{where}: '{name}' must be an integer (got {value!r})")
    return value


def validate_configuration(
    process_specs: Sequence[ProcessSpec],
    resource_specs: Sequence[ResourceSpec],
    quantum: int
) -> None:
    """
    Reject configurations the simulation cannot run.

    Raises:
        ConfigurationError: On non-positive quantum, capacity or burst,
            negative arrival, duplicate ids or unknown requested resources
    """
    if quantum <= 0:
        raise ConfigurationError(f"Quantum must be positive (got {quantum})", snapshot={"quantum": quantum})

    rids = set()
    for spec in resource_specs:
        if spec.rid in rids:
            raise ConfigurationError(f"Duplicate resource id R{spec.rid}", snapshot={"rid": spec.rid})
        if spec.total < 1:
            raise ConfigurationError(
                f"Resource R{spec.rid}: capacity must be positive (got {spec.total})", snapshot={"rid": spec.rid}
            )
        rids.add(spec.rid)

    pids = set()
    for spec in process_specs:
        if spec.pid in pids:
            raise ConfigurationError(f"Duplicate process id P{spec.pid}", snapshot={"pid": spec.pid})
        pids.add(spec.pid)
        if spec.arrival < 0:
            raise ConfigurationError(f"P{spec.pid}: arrival must be >= 0 (got {spec.arrival})", snapshot={"pid": spec.pid})
        if spec.burst <= 0:
            raise ConfigurationError(f"P{spec.pid}: burst must be positive (got {spec.burst})", snapshot={"pid": spec.pid})
        for rid in spec.requested_resources:
            if rid not in rids:
                raise ConfigurationError(
                    f"P{spec.pid} requests unknown resource R{rid}", snapshot={"pid": spec.pid, "rid": rid}
                )


def build_system_state(
    process_specs: Sequence[ProcessSpec],
    resource_specs: Sequence[ResourceSpec],
    quantum: int = DEFAULT_QUANTUM
) -> SimulationState:
    """
    Validate specs and build the initial state at clock 0.

    Nothing is built when validation fails.
    """
    validate_configuration(process_specs, resource_specs, quantum)

    registry = ResourceRegistry()
    for spec in resource_specs:
        registry.register(spec.rid, spec.total)

    processes = ProcessTable([Process.from_spec(spec) for spec in process_specs])
    return SimulationState(processes=processes, registry=registry, quantum=quantum)


def get_scenario_description(file_path: str) -> str:
    """
    Get description from scenario file without full loading.

    Returns:
        Description string, or empty string if not present or unreadable
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return ''
    if not isinstance(data, dict):
        return ''
    return data.get('description', '')
