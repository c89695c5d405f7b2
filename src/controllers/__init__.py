from functools import partial
import asyncio
import sys
from aiortc.contrib.media import MediaBlackhole, MediaRecorder
from .call_controller import CallSession, SessionRole
from tools.errors import CallError
from tools.logger import *
from use_cases.local_media import acquire_local_media
from use_cases.signaling_store import MemoryStore, get_store

HELP_TEXT = "Commands: [m] toggle mute, [q] leave"


class StatusPrinter:
    """Logs the status line and the error line whenever one of them changes."""

    def __init__(self, label: str = ""):
        self.label = f"[{label}] " if label else ""
        self._last_status = None
        self._last_error = None

    def __call__(self, snapshot: dict):
        if snapshot["status"] and snapshot["status"] != self._last_status:
            log_info(f"{self.label}Status: {snapshot['status']}")
        if snapshot["error"] and snapshot["error"] != self._last_error:
            log_warning(f"{self.label}Error: {snapshot['error']}")
        self._last_status = snapshot["status"]
        self._last_error = snapshot["error"]


def _media_factory(args):
    return partial(
        acquire_local_media,
        video_source=args.video,
        video_format=args.video_format,
        audio_source=args.audio,
        audio_format=args.audio_format,
    )


def _build_sink(record_path):
    if record_path:
        log_info(f"Recording remote media to {record_path}")
        return MediaRecorder(record_path)
    return MediaBlackhole()


def _build_session(store, args, sink, label=""):
    session = CallSession(
        store,
        media_factory=_media_factory(args),
        ice_servers=args.stun,
        on_remote_track=sink.addTrack,
    )
    session.status.on_change(StatusPrinter(label))
    return session


async def _start_sink_when_connected(session: CallSession, sink):
    """Remote tracks are all known once the negotiation completes."""
    await session.wait_connected()
    await sink.start()
    log_info("Remote media flowing")


async def _interactive_loop(session: CallSession):
    log_info(HELP_TEXT)
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        command = line.strip().lower()
        if command == "q":
            return
        if command == "m":
            muted = session.toggle_mute()
            log_info("Microphone muted" if muted else "Microphone live")
        elif command:
            log_info(HELP_TEXT)


async def main_call_task(args):
    """
    Run a single call from the command line until the user leaves.
    """
    if args.command == "loopback":
        return await main_loopback_task(args)

    store = get_store(args.store, args.redis_url)
    sink = _build_sink(args.record)
    session = _build_session(store, args, sink)
    sink_task = None

    try:
        if args.command == "create":
            room_id, _ = await session.create_session()
            log_info(f"Share this room id with the other participant: {room_id}")
        else:
            await session.join_session(args.room_id)

        sink_task = asyncio.create_task(_start_sink_when_connected(session, sink))
        await _interactive_loop(session)
    except CallError as e:
        log_error(f"{e.error_type}: {e.message}")
        return 1
    finally:
        if sink_task is not None:
            sink_task.cancel()
            await asyncio.gather(sink_task, return_exceptions=True)
        await session.leave()
        await sink.stop()
        await store.close()
    return 0


async def main_loopback_task(args):
    """
    Run caller and callee in one process over the in-memory store.
    """
    store = MemoryStore()
    caller_sink = _build_sink(args.record)
    callee_sink = MediaBlackhole()
    caller = _build_session(store, args, caller_sink, SessionRole.CALLER.value)
    callee = _build_session(store, args, callee_sink, SessionRole.CALLEE.value)

    try:
        room_id, _ = await caller.create_session()
        await callee.join_session(room_id)
        await asyncio.gather(
            caller.wait_connected(args.timeout), callee.wait_connected(args.timeout)
        )
        await caller_sink.start()
        await callee_sink.start()
        log_info(f"Loopback call established in room {room_id}")
        await _interactive_loop(caller)
    except asyncio.TimeoutError:
        log_error(f"Loopback call did not connect within {args.timeout}s")
        return 1
    except CallError as e:
        log_error(f"{e.error_type}: {e.message}")
        return 1
    finally:
        await callee.leave()
        await caller.leave()
        await callee_sink.stop()
        await caller_sink.stop()
    return 0
