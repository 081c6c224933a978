import sys
import threading

try:
    import rtmidi
except ImportError:
    print("Error: rtmidi library not found.", file=sys.stderr)
    print("Please install it using: pip install python-rtmidi", file=sys.stderr)
    sys.exit(1)

try:
    from music21 import pitch
except ImportError:
    print("Error: music21 library not found.", file=sys.stderr)
    print("Please install it using: pip install music21", file=sys.stderr)
    sys.exit(1)

from config import DEFAULT_VOLUME, NOTE_RELEASE_SEC
from playback.base import AudioEngine

NOTE_ON = 0x90
NOTE_OFF = 0x80
CONTROL_CHANGE = 0xB0
ALL_NOTES_OFF = 123


class MidiAudioEngine(AudioEngine):
    """Sends each note to a MIDI device and releases it after a fixed time."""

    def __init__(self, port_name=None, release_sec: float = NOTE_RELEASE_SEC,
                 volume: float = DEFAULT_VOLUME, midi_out=None, verbose: bool = True):
        """
        Args:
            port_name: Substring of the MIDI port to open. When None the first
                       available port is used; with no ports a virtual port is
                       created.
            release_sec: How long each note is held before its note-off.
            midi_out: An already constructed rtmidi.MidiOut (mainly for tests).
        """
        self.midi_out = midi_out if midi_out is not None else rtmidi.MidiOut()
        self.port_name = port_name
        self.release_sec = release_sec
        self.volume = volume
        self.verbose = verbose
        self.is_initialized = False
        self.open_failed = False
        self._lock = threading.Lock()
        # note name -> {'midi_note': int, 'timer': Timer}
        self.active_notes = {}

    @property
    def is_ready(self) -> bool:
        return self.is_initialized

    def start(self):
        """Open the MIDI connection."""
        if self.is_initialized:
            return
        try:
            available_ports = self.midi_out.get_ports()
            if self.port_name:
                for i, port in enumerate(available_ports):
                    if self.port_name.lower() in port.lower():
                        self.midi_out.open_port(i)
                        print(f"Connected to MIDI port: {port}")
                        break
                else:
                    print(f"MIDI port '{self.port_name}' not found, creating a virtual port")
                    self.midi_out.open_virtual_port(f"Sheet Piano - {self.port_name}")
            elif available_ports:
                self.midi_out.open_port(0)
                print(f"Connected to MIDI port: {available_ports[0]}")
            else:
                self.midi_out.open_virtual_port("Sheet Piano")
                print("Created virtual MIDI port: Sheet Piano")
            self.is_initialized = True
            self.open_failed = False
        except Exception as e:
            self.open_failed = True
            print(f"Error opening MIDI connection: {e}", file=sys.stderr)
            print("MIDI playback will be silent.", file=sys.stderr)

    def ensure_started(self):
        """Opens the port on first use; after a failed open only start() retries."""
        if not self.open_failed:
            self.start()

    def stop(self):
        """Release every held note and close the port."""
        if not self.is_initialized:
            return
        try:
            with self._lock:
                held = list(self.active_notes.items())
                self.active_notes.clear()
            for note_id, note_info in held:
                note_info['timer'].cancel()
                self.midi_out.send_message([NOTE_OFF, note_info['midi_note'], 0])
            self.midi_out.send_message([CONTROL_CHANGE, ALL_NOTES_OFF, 0])
            self.midi_out.close_port()
            print("MIDI connection closed")
        except Exception as e:
            print(f"Error closing MIDI connection: {e}", file=sys.stderr)
        self.is_initialized = False

    def trigger(self, note_name: str, volume: float | None = None):
        if not self.is_initialized:
            return
        try:
            midi_note = pitch.Pitch(note_name).midi
        except Exception:
            print(f"Warning: '{note_name}' is not a pitch name. Skipping.", file=sys.stderr)
            return
        velocity = max(1, min(127, int((self.volume if volume is None else volume) * 127)))

        try:
            with self._lock:
                previous = self.active_notes.pop(note_name, None)
            # Retrigger: end the sounding copy first
            if previous is not None:
                previous['timer'].cancel()
                self.midi_out.send_message([NOTE_OFF, previous['midi_note'], 0])

            self.midi_out.send_message([NOTE_ON, midi_note, velocity])
            if self.verbose:
                print(f"MIDI note: {note_name} (MIDI: {midi_note}, velocity: {velocity})")

            timer = threading.Timer(self.release_sec, self._send_note_off, args=[note_name, midi_note])
            timer.daemon = True
            with self._lock:
                self.active_notes[note_name] = {'midi_note': midi_note, 'timer': timer}
            timer.start()
        except Exception as e:
            print(f"Error sending MIDI note '{note_name}': {e}", file=sys.stderr)

    def _send_note_off(self, note_id: str, midi_note: int):
        try:
            with self._lock:
                note_info = self.active_notes.get(note_id)
                # Only the timer of the sounding copy may end it
                if note_info is None or note_info['timer'] is not threading.current_thread():
                    return
                del self.active_notes[note_id]
            self.midi_out.send_message([NOTE_OFF, midi_note, 0])
        except Exception as e:
            print(f"Error sending MIDI note-off: {e}", file=sys.stderr)
