"""Load test that submits many addons and records resource usage."""

from __future__ import annotations

import argparse
import os
import subprocess
import threading
import time

from addonmgr.kube import KubectlClient, addon_gvr
from addonmgr.resources import create_load_test_addon

NUMBER_OF_ROUTINES = 10
ADDONS_PER_ROUTINE = 200
STATUS_POLL_ATTEMPTS = 501
SUMMARY_INTERVAL_SECONDS = 120
ADDON_PATH = "docs/examples/eventrouter.yaml"
ADDON_NAMESPACE = "addon-manager-system"
SUMMARY_FILE = "summary.txt"

_ERRORS = (OSError, ValueError, LookupError, RuntimeError)


def _count_addons() -> str:
    """Return the number of lines ``kubectl get addons`` prints."""
    try:
        result = subprocess.run(
            ["kubectl", "-n", ADDON_NAMESPACE, "get", "addons"],
            capture_output=True,
            text=True,
            check=False,
        )
        output = result.stdout or ""
    except OSError:
        output = ""
    return str(output.count("\n"))


def _usage(pid: str) -> str:
    result = subprocess.run(
        ["ps", "-p", pid, "-o", "%cpu,%mem"], capture_output=True, text=True, check=True
    )
    return result.stdout


def summary(manager_pid, wfctrl_pid, writer) -> None:
    """Write the addon count and cpu/memory usage of both controllers to ``writer``.

    Raises RuntimeError when the usage of a process cannot be collected.
    """
    addons_num = _count_addons()
    print(f"\n addons number {addons_num}\n", end="")

    try:
        manager_usage = _usage(manager_pid)
        wfctrl_usage = _usage(wfctrl_pid)
    except (OSError, subprocess.CalledProcessError) as err:
        print(f"failed to collect addonmanager cpu/mem usage. {err}", end="")
        raise RuntimeError(f"failed to collect cpu/mem usage. {err}") from err

    print(
        f"addons number {addons_num} addonmanager cpu/mem usage {manager_usage} "
        f"controller cpu/mem usage {wfctrl_usage}",
        end="",
    )
    manager_line = manager_usage.removesuffix("\n")
    wfctrl_line = wfctrl_usage.removesuffix("\n")
    line = (
        f"<addons-num:{addons_num.strip()}  \n addon-mgr:{manager_line}  \n"
        f"wf-controller:{wfctrl_line}>"
    )
    writer.write(line + "\n#############\n")
    writer.flush()


def _env_int(name: str) -> int:
    try:
        return int(os.environ.get(name, ""))
    except ValueError:
        return 0


def _monitor(stop: threading.Event, manager_pid: str, wfctrl_pid: str, writer) -> None:
    while not stop.is_set():
        print(
            f"\n every 2 minutes collecting data for mgr {manager_pid} wfctrl {wfctrl_pid}",
            end="",
        )
        try:
            summary(manager_pid, wfctrl_pid, writer)
        except RuntimeError:
            pass
        stop.wait(SUMMARY_INTERVAL_SECONDS)


def _wait_for_status(client, namespace: str, name: str) -> bool:
    for _ in range(STATUS_POLL_ATTEMPTS):
        error = None
        try:
            addon = client.get(addon_gvr(), namespace, name)
        except _ERRORS as err:
            addon, error = None, err
        if addon is None or addon.get("status") is None:
            print(f"\n\n retry get addon status {error} get ", end="")
            time.sleep(1)
            continue
        return True
    return False


def _worker(index: int, lock, client) -> None:
    first = index * 100
    for number in range(first, first + ADDONS_PER_ROUTINE):
        try:
            addon = create_load_test_addon(lock, client, ADDON_PATH, f"-{number}")
        except _ERRORS as err:
            print(f"\n\n create addon failure err {err}", end="")
            time.sleep(1)
            continue
        metadata = addon.get("metadata") or {}
        _wait_for_status(client, metadata.get("namespace", ""), metadata.get("name", ""))


def main(argv=None) -> int:
    """Submit addons from several threads while recording controller usage."""
    parser = argparse.ArgumentParser(
        prog="addonmgr-loadtest",
        description="Submit many addons and record controller cpu/memory usage.",
    )
    parser.parse_args(argv)

    start, end = _env_int("LOADTEST_START_NUMBER"), _env_int("LOADTEST_END_NUMBER")
    print(f"start = {start} end = {end}", end="")

    try:
        summary_file = open(SUMMARY_FILE, "w", encoding="utf-8")
    except OSError:
        return 1

    with summary_file:
        stop = threading.Event()
        monitor = threading.Thread(
            target=_monitor,
            args=(stop, os.environ.get("MANAGER_PID", ""), os.environ.get("WFCTRL_PID", ""),
                  summary_file),
            daemon=True,
        )
        monitor.start()

        client = KubectlClient()
        lock = threading.Lock()
        workers = [
            threading.Thread(target=_worker, args=(index, lock, client))
            for index in range(1, NUMBER_OF_ROUTINES + 1)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        stop.set()
        monitor.join()
    return 0