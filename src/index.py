## Main Execution Script
from controllers import main_call_task
from tools.logger import *
from tools import config
import argparse
import asyncio
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Peer-to-peer audio/video call")
    parser.add_argument(
        "-l",
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (use -l or --log-level)",
    )
    parser.add_argument(
        "--log-dir",
        default=config.CALL_LOG_DIR,
        help="Also write daily log files to this directory",
    )
    parser.add_argument(
        "--store",
        choices=["memory", "redis"],
        default=config.SIGNALING_STORE,
        help="Signaling store backend",
    )
    parser.add_argument("--redis-url", default=config.REDIS_URL)
    parser.add_argument(
        "--stun",
        action="append",
        default=None,
        help="STUN/TURN server URL, may be repeated",
    )
    parser.add_argument("--video", default=config.VIDEO_SOURCE, help="Camera device or media file")
    parser.add_argument("--video-format", default=config.VIDEO_FORMAT)
    parser.add_argument(
        "--audio",
        default=config.AUDIO_SOURCE,
        help="Microphone device; empty to use the audio of --video",
    )
    parser.add_argument("--audio-format", default=config.AUDIO_FORMAT)
    parser.add_argument("--record", default=None, help="Record remote media to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("create", help="Create a room and wait for the other participant")
    join = subparsers.add_parser("join", help="Join an existing room")
    join.add_argument("room_id")
    loopback = subparsers.add_parser(
        "loopback", help="Call yourself through the in-memory store"
    )
    loopback.add_argument("--timeout", type=float, default=30.0)
    return parser


def run(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.stun is None:
        args.stun = config.STUN_SERVERS

    set_log_level(args.log_level)
    if args.log_dir:
        configure_log_dir(args.log_dir)

    if args.store == "memory" and args.command != "loopback":
        log_warning("The memory store only reaches peers inside this process; use --store redis")

    try:
        return asyncio.run(main_call_task(args))
    except KeyboardInterrupt:
        log_warning("Keyboard interrupt received. Leaving the call and exiting.")
        return 130


if __name__ == "__main__":
    sys.exit(run())
