#!/usr/bin/env python3
"""
Quantum Wave–Particle — a noise-field particle sketch.

Nods to Sol LeWitt (serial presets, the visible grid), Marius Watz (dense
noise-driven particle ecosystems) and Zach Lieberman (direct, playful input).

Keys / mouse (while running):
  Mouse move — local field influence (particles near the pointer glow)
  Mouse drag — pull particles toward the pointer
  Click      — cycle particle shape (circle→square→triangle→star) + outward burst
  Space      — toggle Wave <-> Particle mode
  1..4       — preset
  s          — save screenshot to ./screenshots
  r          — reseed noise + scatter particles
  f          — toggle fullscreen
  Esc        — quit

Env:
  QD_PARTICLES=900   particle count
  QD_AUDIO=0         disable chimes
  QD_FULLSCREEN=1    start fullscreen

Requires: pygame, numpy, scipy, pyaudio (optional at runtime)
"""
import os
import time

import pygame

from duality_engine import Simulation, Pointer, N_PARTICLES
from duality_audio import ChimeSynth

# ===== Config =====
FPS = 60
WIDTH, HEIGHT = 1280, 800
CAPTION = "Quantum Wave–Particle"
SCREENSHOT_DIR = "screenshots"
SCREENSHOT_PREFIX = "quantum_duality"

PARTICLES = int(os.getenv("QD_PARTICLES", N_PARTICLES))
AUDIO_ENABLED = os.getenv("QD_AUDIO", "1") != "0"
START_FULLSCREEN = os.getenv("QD_FULLSCREEN") == "1"

PRESET_KEYS = (pygame.K_1, pygame.K_2, pygame.K_3, pygame.K_4)


def save_canvas(surface, directory=SCREENSHOT_DIR, prefix=SCREENSHOT_PREFIX):
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, time.strftime(f"{prefix}_%Y%m%d_%H%M%S.png"))
    try:
        pygame.image.save(surface, path)
    except (pygame.error, OSError) as e:
        print(f"[save] failed: {e}")
        return None
    print(f"[save] {path}")
    return path


class InputDispatcher:
    """Routes pygame events to the simulation, the synth and the export hook.

    A click fans out to independent handlers (audio start, shape cycle + burst,
    shape chime) so the particle physics never touches audio.
    """
    def __init__(self, sim, synth, screen=None, save=save_canvas):
        self.sim = sim
        self.synth = synth
        self.screen = screen
        self.save = save
        self.running = True
        self.fullscreen = False
        self.click_handlers = [self.start_audio, self.click_field, self.click_chime]

    # ----- click handlers -----
    def start_audio(self, pointer):
        self.synth.ensure_started()

    def click_field(self, pointer):
        self.sim.on_click(pointer)

    def click_chime(self, pointer):
        self.synth.shape_cue(self.sim.shape_index)

    # ----- key actions -----
    def toggle_mode(self):
        mode = self.sim.toggle_mode()
        print(f"[input] mode -> {mode}")
        self.synth.mode_cue(mode)

    def select_preset(self, index):
        if self.sim.select_preset(index):
            print(f"[input] preset -> {index + 1} ({self.sim.preset.name})")
            self.synth.preset_cue(index)

    def reseed(self):
        seed = pygame.time.get_ticks()
        self.sim.reseed(seed)
        print(f"[input] reseed -> {seed}")
        self.synth.reseed_cue()

    def toggle_fullscreen(self):
        self.fullscreen = not self.fullscreen
        if self.fullscreen:
            self.screen = pygame.display.set_mode((0, 0), pygame.FULLSCREEN)
        else:
            self.screen = pygame.display.set_mode((WIDTH, HEIGHT), pygame.RESIZABLE)
        self.sim.resize(*self.screen.get_size())

    # ----- dispatch -----
    def handle(self, event):
        if event.type == pygame.QUIT:
            self.running = False
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            pointer = Pointer(*event.pos, pressed=True)
            for handler in self.click_handlers:
                handler(pointer)
        elif event.type == pygame.KEYDOWN:
            if event.key == pygame.K_ESCAPE:
                self.running = False
            elif event.key == pygame.K_SPACE:
                self.toggle_mode()
            elif event.key in PRESET_KEYS:
                self.select_preset(PRESET_KEYS.index(event.key))
            elif event.key == pygame.K_s:
                if self.screen is not None:
                    self.save(self.screen)
            elif event.key == pygame.K_r:
                self.reseed()
            elif event.key == pygame.K_f:
                self.toggle_fullscreen()
        elif event.type == pygame.VIDEORESIZE and not self.fullscreen:
            self.screen = pygame.display.set_mode(event.size, pygame.RESIZABLE)
            self.sim.resize(*self.screen.get_size())


def main():
    os.environ.setdefault("SDL_AUDIODRIVER", "pulse")
    pygame.init()
    pygame.display.set_caption(CAPTION)
    if START_FULLSCREEN:
        screen = pygame.display.set_mode((0, 0), pygame.FULLSCREEN)
    else:
        screen = pygame.display.set_mode((WIDTH, HEIGHT), pygame.RESIZABLE)
    clock = pygame.time.Clock()

    sim = Simulation(*screen.get_size(), n=PARTICLES)
    synth = ChimeSynth(enabled=AUDIO_ENABLED)
    dispatcher = InputDispatcher(sim, synth, screen)
    dispatcher.fullscreen = START_FULLSCREEN
    w, h = screen.get_size()
    print(f"[info] {len(sim.particles)} particles, {w}x{h} @ {FPS} fps, "
          f"audio {'on first click' if AUDIO_ENABLED else 'off'}")

    try:
        while dispatcher.running:
            clock.tick(FPS)
            for event in pygame.event.get():
                dispatcher.handle(event)
            sim.step(Pointer.from_mouse(), dispatcher.screen)
            pygame.display.flip()
    finally:
        synth.close()
        pygame.quit()


if __name__ == "__main__":
    main()
