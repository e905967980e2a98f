"""
Process tree termination.

When a build or administrative command overruns its timeout, the whole tree
it spawned (compilers, test binaries, shells) must go, not just the direct
child. Termination escalates from SIGTERM to SIGKILL and always finishes by
reaping what it can.
"""

import logging
import os
import signal
from typing import List

import psutil

logger = logging.getLogger(__name__)


class TimeoutConstants:
    """
    Centralized timeout configuration for process handling.
    """
    # Grace period between SIGTERM and SIGKILL.
    TERMINATION_GRACEFUL_TIMEOUT = 3.0
    TERMINATION_FORCE_TIMEOUT = 2.0

    # How long to keep draining the output pipe once the child has exited.
    OUTPUT_DRAIN_TIMEOUT = 5.0


def _is_process_alive(process: psutil.Process) -> bool:
    """Safely check if a process is still alive and not a zombie."""
    try:
        if not process.is_running():
            return False
        return process.status() not in (psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def _get_process_children(parent: psutil.Process) -> List[psutil.Process]:
    """Safely get all live descendants of a process."""
    try:
        return [c for c in parent.children(recursive=True) if _is_process_alive(c)]
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return []


def _signal_processes(processes: List[psutil.Process], force: bool) -> List[psutil.Process]:
    signaled = []
    for process in processes:
        try:
            if force:
                process.kill()
            else:
                process.terminate()
            signaled.append(process)
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            logger.warning(f"Access denied signaling PID {process.pid}")
    return signaled


def _kill_process_group(pid: int) -> None:
    """Kill the process group led by pid, if the platform has them."""
    if not hasattr(os, "killpg"):
        return
    try:
        os.killpg(pid, signal.SIGKILL)
        logger.debug(f"Sent SIGKILL to process group {pid}")
    except (ProcessLookupError, PermissionError):
        pass


def terminate_process_tree(pid: int, name: str) -> None:
    """
    Terminate a process and all of its descendants.

    The caller still owns the ``subprocess.Popen`` object and must ``wait()``
    on it afterwards so the direct child is reaped.

    Args:
        pid: PID of the root of the tree
        name: Human-readable name used in log messages
    """
    if pid <= 0:
        logger.warning(f"Invalid PID {pid} for {name}, skipping termination")
        return

    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        logger.debug(f"Process {name} (PID: {pid}) already terminated")
        return

    # Snapshot descendants before the parent dies and they get reparented.
    children = _get_process_children(parent)
    logger.info(f"Terminating {name} (PID: {pid}) and {len(children)} children")

    phases = [
        ("graceful", False, TimeoutConstants.TERMINATION_GRACEFUL_TIMEOUT),
        ("force_kill", True, TimeoutConstants.TERMINATION_FORCE_TIMEOUT),
    ]
    for phase_name, force, timeout in phases:
        alive = [p for p in [parent] + children if _is_process_alive(p)]
        alive.extend(c for c in _get_process_children(parent) if c not in alive)
        if not alive:
            break

        signaled = _signal_processes(alive, force)
        try:
            _, still_alive = psutil.wait_procs(signaled, timeout=timeout)
        except psutil.Error as e:
            logger.warning(f"Error waiting for {name} to terminate: {e}")
            still_alive = signaled

        remaining = [p for p in still_alive if _is_process_alive(p)]
        if not remaining:
            logger.debug(f"{name} terminated in phase {phase_name}")
            break
        logger.warning(f"Phase {phase_name}: {len(remaining)} processes of {name} still alive")

    # Commands are started in their own session, so the group id equals the pid.
    _kill_process_group(pid)
