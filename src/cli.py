#!/usr/bin/env python3
"""
Voice Relay command line.

    voice-relay serve [--host H] [--port P]
    voice-relay record [--seconds N]
    voice-relay speak TEXT [--voice V]

``serve`` runs the relay under uvicorn. ``record`` and ``speak`` drive a
``VoiceSessionController`` against a running relay using the default
microphone and speaker.
"""

import argparse
import asyncio
import logging
import sys

from src.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def serve(settings: Settings, host: str | None, port: int | None) -> int:
    """Start the relay; refuses to start without a provider key."""
    if not settings.openai_api_key:
        logger.error("OPENAI_API_KEY is not set. Add it to the environment or .env file.")
        return 1

    import uvicorn

    uvicorn.run(
        "src.api.app:app",
        host=host or settings.app_host,
        port=port or settings.app_port,
        timeout_keep_alive=settings.keep_alive_timeout,
        log_level=settings.log_level.lower(),
    )
    return 0


def _print_status(input_status, output_status) -> None:
    if input_status.error:
        print(f"Error: {input_status.error}", file=sys.stderr)
    elif input_status.remaining_seconds is not None:
        print(f"Recording... {input_status.remaining_seconds}s left")
    if output_status.error:
        print(f"Error: {output_status.error}", file=sys.stderr)


async def record(settings: Settings, seconds: int) -> int:
    """Record until the countdown runs out and print the transcript."""
    from src.client.api_client import RelayAPIClient
    from src.client.controller import InputState, VoiceSessionController
    from src.client.devices import SoundDeviceMicrophone, SoundDevicePlayer

    async with RelayAPIClient(settings.relay_base_url, timeout=settings.client_timeout) as api:
        controller = VoiceSessionController(
            api,
            SoundDeviceMicrophone(),
            SoundDevicePlayer(),
            max_recording_seconds=seconds,
            on_change=_print_status,
        )
        try:
            await controller.start_recording()
            await controller.wait_until_settled()
        finally:
            await controller.aclose()

    if controller.input_status.state is not InputState.done:
        return 1
    print(controller.target.get_text())
    return 0


async def speak(settings: Settings, text: str, voice: str | None) -> int:
    """Synthesize ``text`` and block until playback ends."""
    from src.client.api_client import RelayAPIClient
    from src.client.controller import OutputState, VoiceSessionController
    from src.client.devices import SoundDeviceMicrophone, SoundDevicePlayer

    finished = asyncio.Event()

    def on_change(input_status, output_status) -> None:
        _print_status(input_status, output_status)
        if output_status.state in (OutputState.idle, OutputState.errored):
            finished.set()

    async with RelayAPIClient(settings.relay_base_url, timeout=settings.client_timeout) as api:
        controller = VoiceSessionController(
            api,
            SoundDeviceMicrophone(),
            SoundDevicePlayer(),
            voice=voice,
            on_change=on_change,
        )
        try:
            await controller.speak(text)
            if controller.is_speaking:
                await finished.wait()
        finally:
            await controller.aclose()

    return 1 if controller.output_status.state is OutputState.errored else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voice-relay",
        description="Speech transcription and synthesis relay",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve_p = sub.add_parser("serve", help="Run the relay server")
    serve_p.add_argument("--host", type=str, default=None, help="Bind address")
    serve_p.add_argument("--port", type=int, default=None, help="Listen port")

    record_p = sub.add_parser("record", help="Record and print a transcript")
    record_p.add_argument(
        "--seconds",
        type=int,
        default=None,
        help="Recording length (default: MAX_RECORDING_SECONDS)",
    )

    speak_p = sub.add_parser("speak", help="Speak text through the default output")
    speak_p.add_argument("text", type=str)
    speak_p.add_argument("--voice", type=str, default=None, help="Voice name")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        code = serve(settings, args.host, args.port)
    elif args.command == "record":
        code = asyncio.run(record(settings, args.seconds or settings.max_recording_seconds))
    else:
        code = asyncio.run(speak(settings, args.text, args.voice))
    sys.exit(code)


if __name__ == "__main__":
    main()
