import hashlib
import os
import socket
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

import based58
import pytest
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from ipfs_file_enc.config import NodeConfig


def fake_cid(data: bytes) -> str:
    """CIDv0 (sha2-256 multihash, base58btc) of ``data``."""
    return based58.b58encode(b"\x12\x20" + hashlib.sha256(data).digest()).decode()


def _strip_ipfs_prefix(arg: str) -> str:
    return arg[len("/ipfs/") :] if arg.startswith("/ipfs/") else arg


def create_fake_node_app(node: "FakeNode") -> FastAPI:
    """
    A minimal IPFS node: the HTTP API subset used by the client plus a path
    gateway, backed by an in-memory dict.
    """
    app = FastAPI()

    @app.post("/api/v0/id")
    def node_id():
        node.calls.append("id")
        return {"ID": "12D3KooWFakeNode", "AgentVersion": "fake-ipfs/0.1.0"}

    @app.post("/api/v0/add")
    async def add(request: Request):
        node.calls.append("add")
        form = await request.form()
        upload = form["file"]
        data = await upload.read()
        cid = fake_cid(data)
        node.store[cid] = data
        node.upload_names.append(upload.filename)
        return {"Name": upload.filename, "Hash": cid, "Size": str(len(data))}

    @app.post("/api/v0/cat")
    def cat(arg: str):
        node.calls.append("cat")
        cid = _strip_ipfs_prefix(arg)
        if cid not in node.store:
            return JSONResponse(
                {"Message": f"block {cid} not found", "Code": 0, "Type": "error"},
                status_code=500,
            )
        return Response(node.store[cid], media_type="text/plain")

    @app.api_route("/", methods=["GET", "HEAD"])
    def gateway_root():
        return Response(b"", media_type="text/plain")

    @app.get("/ipfs/{cid}")
    def gateway_get(cid: str):
        node.calls.append("gateway")
        if cid not in node.store:
            return Response(b"not found", status_code=404)
        return Response(node.store[cid], media_type="application/octet-stream")

    return app


@dataclass
class FakeNode:
    url: str = ""
    store: Dict[str, bytes] = field(default_factory=dict)
    calls: list = field(default_factory=list)
    upload_names: list = field(default_factory=list)


@pytest.fixture(scope="function")
def free_port():
    """Finds and returns a free port on the host."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        return s.getsockname()[1]


@pytest.fixture(scope="function")
def fake_ipfs_node(free_port):
    """
    Starts a fake IPFS node in a background thread for a test function.
    Uses a dynamically allocated port so tests stay isolated.
    """
    node = FakeNode(url=f"http://127.0.0.1:{free_port}")
    config = uvicorn.Config(
        create_fake_node_app(node),
        host="127.0.0.1",
        port=free_port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    deadline = time.time() + 10
    while not server.started:
        if time.time() > deadline or not thread.is_alive():
            raise RuntimeError("Fake IPFS node failed to start in time.")
        time.sleep(0.05)

    yield node

    server.should_exit = True
    thread.join(timeout=5)


@pytest.fixture
def isolated_config(tmp_path):
    """NodeConfig that cannot see any real local IPFS node."""
    return NodeConfig(
        local_node_url="",
        ipfs_path=str(tmp_path / "no-ipfs-repo"),
        probe_timeout=2.0,
    )


@pytest.fixture
def zero_key():
    return bytes(32)


@pytest.fixture
def cli_test_env(tmp_path, request):
    """
    Sets up a test environment with a temporary directory and a helper for running CLI commands.
    """

    def run_command(cmd, env=None):
        full_cmd = [sys.executable, "-m", "ipfs_file_enc.cli.main"] + cmd
        run_env = dict(os.environ)
        run_env["IPFS_PATH"] = str(tmp_path / "no-ipfs-repo")
        run_env.pop("IPFS_FILE_ENC_KEY", None)
        run_env.pop("IPFS_FILE_ENC_API", None)
        run_env.update(env or {})
        result = subprocess.run(
            full_cmd,
            cwd=tmp_path,
            capture_output=True,
            text=True,
            check=False,
            env=run_env,
        )

        if request.config.getoption("capture") == "no":
            if result.stdout:
                print(result.stdout)
            if result.stderr:
                print(result.stderr, file=sys.stderr)

        if result.returncode != 0:
            print("Error running command:", " ".join(full_cmd))
            print("Stdout:", result.stdout)
            print("Stderr:", result.stderr)
        return result

    return run_command, Path(tmp_path)
