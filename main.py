import argparse
import os
import sys

# Check for music21 before other imports that might depend on it indirectly
try:
    import music21  # noqa: F401
except ImportError:
    print("Error: music21 library not found.", file=sys.stderr)
    print("Please install it using: pip install music21", file=sys.stderr)
    sys.exit(1)

from config import (
    CLEAR_SHEET_HOTKEY,
    DEFAULT_BPM,
    DEFAULT_MIDI_PORT_NAME,
    EDIT_HOTKEY,
    EXIT_HOTKEY,
    PLAY_PAUSE_HOTKEY,
    RESTART_HOTKEY,
    SAMPLES_DIR,
    TEMPO_DOWN_HOTKEY,
    TEMPO_FOCUS_HOTKEY,
    TEMPO_UP_HOTKEY,
)
from console import ConsoleView
from piano import PianoSession
from tempo import TempoController

# Seconds to wait for samples before a headless run starts anyway
HEADLESS_LOAD_TIMEOUT_SEC = 10.0


def create_backend(args):
    if args.backend == 'midi':
        try:
            from playback.midi_backend import MidiAudioEngine
            return MidiAudioEngine(port_name=args.midi_port, verbose=args.verbose)
        except Exception as e:
            print(f"Error initializing MidiAudioEngine: {e}", file=sys.stderr)
            print("Falling back to sample backend.", file=sys.stderr)
    from playback.sample_backend import SampleAudioEngine
    return SampleAudioEngine(samples_dir=args.samples_dir, verbose=args.verbose)


def main():
    # --- Argument Parsing ---
    parser = argparse.ArgumentParser(description='Play the computer keyboard as a piano, record a sheet and play it back.')
    parser.add_argument(
        '-b', '--backend',
        type=str,
        default='sample',
        choices=['sample', 'midi'],
        help='Audio backend: sample (audio files via pygame) or midi (MIDI output). Default: sample.'
    )
    parser.add_argument(
        '--midi-port',
        type=str,
        default=DEFAULT_MIDI_PORT_NAME,
        help='MIDI port name to use (for midi backend). Default: use first available port or create virtual port.'
    )
    parser.add_argument(
        '-d', '--samples-dir',
        type=str,
        default=SAMPLES_DIR,
        help=f'Directory containing the piano samples. Default: {SAMPLES_DIR}'
    )
    parser.add_argument(
        '--bpm',
        type=int,
        default=DEFAULT_BPM,
        help=f'Initial tempo, clamped to the supported range. Default: {DEFAULT_BPM}'
    )
    parser.add_argument(
        '-s', '--sheet',
        type=str,
        default='',
        help='Sheet text to start with, e.g. "ab[cd]e".'
    )
    parser.add_argument(
        '--headless',
        action='store_true',
        help='Play the --sheet once and exit instead of listening to the keyboard.'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Print every note the backend sounds.'
    )
    args = parser.parse_args()

    # --- Initialization ---
    print("--- Sheet Piano Initializing ---")
    if args.backend == 'sample':
        print(f"Using samples directory: {os.path.abspath(args.samples_dir)}")

    backend = create_backend(args)
    backend.start()

    view = ConsoleView()
    session = PianoSession(backend, tempo=TempoController(bpm=args.bpm))
    view.attach(session)
    if args.sheet:
        session.paste_sheet(args.sheet)

    if args.headless:
        if not args.sheet:
            print("Error: --headless needs a --sheet to play.", file=sys.stderr)
            session.close()
            sys.exit(2)
        wait_until_ready = getattr(backend, 'wait_until_ready', None)
        if wait_until_ready is not None and not wait_until_ready(HEADLESS_LOAD_TIMEOUT_SEC):
            print("Warning: Samples still loading. Early notes may be silent.", file=sys.stderr)
        try:
            session.play(block=True)
        except KeyboardInterrupt:
            print("\nCtrl+C detected. Stopping playback...")
        session.close()
        print("\nApplication exited.")
        return

    # Imported here so headless runs work without a display server
    from key_listener import KeyboardListener
    listener = KeyboardListener(session=session)

    # --- Print Status and Instructions ---
    print("\n--- Controls ---")
    print(f" Audio Backend: {args.backend}")
    if args.backend == 'midi' and args.midi_port:
        print(f" MIDI Port: {args.midi_port}")
    print(f" Keys: {' '.join(session.key_map.labels)}")
    print(f"  {PLAY_PAUSE_HOTKEY} : Play / Pause sheet")
    print(f"  {RESTART_HOTKEY} : Restart sheet")
    print(f"  {EDIT_HOTKEY} : Toggle sheet edit mode")
    print(f"  {TEMPO_FOCUS_HOTKEY} : Type a tempo (Enter to apply)")
    print(f"  {TEMPO_UP_HOTKEY} / {TEMPO_DOWN_HOTKEY} : Tempo up / down")
    print(f"  {CLEAR_SHEET_HOTKEY} : Clear sheet")
    print(f"  {EXIT_HOTKEY} : Exit application")
    print("----------------")
    view.refresh()

    # --- Start Listening ---
    listener.start()

    # The listener thread closes the session when it stops.
    try:
        listener.join()
    except KeyboardInterrupt:
        print("\nCtrl+C detected. Stopping listener and cleaning up...")
        listener.stop()
        listener.join()

    print("\nApplication exited.")


if __name__ == "__main__":
    main()
