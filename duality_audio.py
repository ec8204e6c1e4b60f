"""
duality_audio.py — optional chimes for mode / preset / shape / reseed events

A small polyphonic sine synth (ADSR envelope, convolution reverb, -12 dB) that
plays through a pyaudio callback stream. The stream is opened lazily on the
first click; if pyaudio is missing or the device can't be opened the synth goes
silent and every trigger becomes a no-op, the visuals keep running.
"""
import threading

import numpy as np
from scipy.signal import fftconvolve
try:
    import pyaudio
except Exception:
    pyaudio = None

# ===== Config =====
SAMPLE_RATE = 44100
BUFFER_SIZE = 512
BPM = 120
VOLUME_DB = -12.0
ATTACK, DECAY, SUSTAIN, RELEASE = 0.05, 0.2, 0.1, 0.8
REVERB_DECAY = 3.0
REVERB_WET = 0.4
MAX_VOICES = 16

SHAPE_NOTES = ("C4", "E4", "G4", "B4")
MODE_NOTES = {"wave": "A3", "particle": "A4"}
PRESET_CHORDS = (
    ("C4", "E4", "G4"),
    ("D4", "F#4", "A4"),
    ("E4", "G#4", "B4"),
    ("F4", "A4", "C5"),
)
RESEED_NOTE = "C5"

# semitones from A in the same octave
NOTE_OFFSETS = {"C": -9, "D": -7, "E": -5, "F": -4, "G": -2, "A": 0, "B": 2}


# ---------- helpers ----------
def note_to_freq(note):
    """'A4' -> 440.0, 'F#4' -> 369.99..., 'Bb3' -> 233.08..."""
    name, rest = note[:1].upper(), note[1:]
    shift = 0
    if rest[:1] == "#":
        shift, rest = 1, rest[1:]
    elif rest[:1] == "b":
        shift, rest = -1, rest[1:]
    if name not in NOTE_OFFSETS or not rest.lstrip("-").isdigit():
        raise ValueError(f"bad note name: {note!r}")
    semis = NOTE_OFFSETS[name] + shift + (int(rest) - 4) * 12
    return 440.0 * 2 ** (semis / 12.0)

def note_duration(value, bpm=BPM):
    """Note value ('4n', '8n', '16n') to seconds at the given tempo."""
    if not value.endswith("n") or not value[:-1].isdigit():
        raise ValueError(f"bad note value: {value!r}")
    return 60.0 / bpm * 4.0 / int(value[:-1])

def envelope(hold, release, sr=SAMPLE_RATE):
    """ADSR gain curve: attack/decay/sustain over `hold` seconds, then release."""
    n_hold = max(1, int(hold * sr))
    n_rel = max(1, int(release * sr))
    t = np.arange(n_hold) / sr
    env = np.where(t < ATTACK, t / ATTACK,
                   np.maximum(SUSTAIN, 1.0 - (1.0 - SUSTAIN) * (t - ATTACK) / DECAY))
    tail = np.linspace(env[-1], 0.0, n_rel)
    return np.concatenate([env, tail])

def render_voice(freqs, duration, sr=SAMPLE_RATE):
    env = envelope(duration, RELEASE, sr)
    t = np.arange(env.size) / sr
    wave = np.zeros(env.size)
    for f in freqs:
        wave += np.sin(2 * np.pi * f * t)
    wave /= max(1, len(freqs))
    return (wave * env).astype(np.float32)

def reverb_impulse(decay=REVERB_DECAY, sr=SAMPLE_RATE, seed=7):
    """Exponentially decaying noise, -60 dB after `decay` seconds, unit energy."""
    n = int(decay * sr)
    rng = np.random.default_rng(seed)
    ir = rng.standard_normal(n) * np.exp(-6.9 * np.arange(n) / (decay * sr))
    return ir / np.sqrt(np.sum(ir ** 2))

def apply_reverb(dry, impulse, wet=REVERB_WET):
    tail = fftconvolve(dry, impulse)
    out = tail * wet
    out[:dry.size] += dry * (1.0 - wet)
    return out


# ---------- synth ----------
class ChimeSynth:
    def __init__(self, enabled=True, sample_rate=SAMPLE_RATE):
        self.enabled = enabled
        self.sample_rate = sample_rate
        self.started = False
        self.failed = False
        self.gain = 10 ** (VOLUME_DB / 20.0)
        self._impulse = reverb_impulse(sr=sample_rate)
        self._voices = []   # [buffer, read position]
        self._lock = threading.Lock()
        self._pa = None
        self._stream = None

    @property
    def active(self):
        return self.started and not self.failed

    def ensure_started(self):
        """Open the output stream once; later calls just report whether it is live."""
        if self.started or self.failed or not self.enabled:
            return self.active
        if pyaudio is None:
            print("[audio] pyaudio not available, running silent")
            self.failed = True
            return False
        try:
            self._pa = pyaudio.PyAudio()
            self._stream = self._pa.open(format=pyaudio.paFloat32,
                                         channels=1,
                                         rate=self.sample_rate,
                                         output=True,
                                         frames_per_buffer=BUFFER_SIZE,
                                         stream_callback=self._callback)
            self._stream.start_stream()
        except Exception as e:
            print(f"[audio] could not open output stream: {e}; running silent")
            self.failed = True
            self.close()
            return False
        self.started = True
        print(f"[audio] output stream open ({self.sample_rate} Hz, {BUFFER_SIZE} frames)")
        return True

    def render(self, notes, duration):
        dry = render_voice([note_to_freq(n) for n in notes], duration, self.sample_rate)
        return (apply_reverb(dry, self._impulse) * self.gain).astype(np.float32)

    def queue(self, buffer):
        with self._lock:
            self._voices.append([buffer, 0])
            if len(self._voices) > MAX_VOICES:
                self._voices.pop(0)

    def trigger(self, notes, value="8n"):
        if not self.active:
            return False
        if isinstance(notes, str):
            notes = (notes,)
        self.queue(self.render(notes, note_duration(value)))
        return True

    def mix(self, frames):
        out = np.zeros(frames, dtype=np.float32)
        with self._lock:
            alive = []
            for voice in self._voices:
                buf, pos = voice
                chunk = buf[pos:pos + frames]
                out[:chunk.size] += chunk
                voice[1] = pos + chunk.size
                if voice[1] < buf.size:
                    alive.append(voice)
            self._voices = alive
        return np.clip(out, -1.0, 1.0)

    def _callback(self, in_data, frame_count, time_info, status):
        try:
            samples = self.mix(frame_count)
        except Exception:
            samples = np.zeros(frame_count, dtype=np.float32)
        return (samples.tobytes(), pyaudio.paContinue)

    # ----- event cues -----
    def shape_cue(self, shape_index):
        return self.trigger(SHAPE_NOTES[shape_index % len(SHAPE_NOTES)], "8n")

    def mode_cue(self, mode):
        return self.trigger(MODE_NOTES[mode], "16n")

    def preset_cue(self, index):
        if not 0 <= index < len(PRESET_CHORDS):
            return False
        return self.trigger(PRESET_CHORDS[index], "8n")

    def reseed_cue(self):
        return self.trigger(RESEED_NOTE, "16n")

    def close(self):
        try:
            if self._stream is not None:
                if self._stream.is_active():
                    self._stream.stop_stream()
                self._stream.close()
        except Exception as e:
            print(f"[audio] error closing stream: {e}")
        self._stream = None
        if self._pa is not None:
            self._pa.terminate()
        self._pa = None
