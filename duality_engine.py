"""
duality_engine.py — shared systems for the Quantum Wave–Particle sketch

Contains:
- Utils: hsb_color / lerp / clamp / map_range + small 2D vector helpers
- Preset + the four template presets (LeWitt-style serial configurations)
- Pointer (mouse position + pressed flag)
- Particle: noise-driven flow, pointer influence, wave trails / morphing shapes
- Simulation: owns particles, active preset, mode, shape index, time
- Backdrop painter, GridOverlay (soft arc lattice), HUD

Everything draws with pygame; colours are given as HSB with alpha
(hue 0..360, saturation/brightness 0..100, alpha 0..1).
"""
import math
import random
import colorsys

import numpy as np
import pygame

from noise_field import NoiseField

TWO_PI = 2 * math.pi
HALF_PI = math.pi / 2

# ===== Config =====
N_PARTICLES = 900
GRID_COLS = 60
GRID_ROWS = 40
GRID_MARGIN = 50
WRAP_MARGIN = 50
CLICK_RADIUS = 140
INFLUENCE_REACH = 0.7      # fraction of canvas width where pointer influence hits zero
TIME_STEP = 0.005
HUE_NOISE_SCALE = 0.002
HUE_SPREAD = 40
CURVE_STEPS = 6
GRID_REFRESH = 0.05        # sketch time between grid layer redraws

WAVE = "wave"
PARTICLE = "particle"
MODES = (WAVE, PARTICLE)
SHAPES = ("circle", "square", "triangle", "star")

BACKDROP = (230, 40, 6)
CONTROLS_TEXT = "Controls: Click=cycle shape • Space=toggle • 1-4=preset • S=save • R=reseed"


# ---------- utils ----------
def hsb_color(h, s, b, a=1.0):
    """HSB (0..360, 0..100, 0..100) + alpha 0..1 -> RGBA 0..255."""
    r, g, bl = colorsys.hsv_to_rgb((h % 360) / 360.0, clamp(s, 0, 100) / 100.0, clamp(b, 0, 100) / 100.0)
    return (int(r * 255), int(g * 255), int(bl * 255), int(round(clamp(a, 0.0, 1.0) * 255)))

def lerp(a, b, t):
    return a + (b - a) * t

def clamp(x, lo, hi):
    return lo if x < lo else hi if x > hi else x

def map_range(v, a0, a1, b0, b1):
    return b0 + (b1 - b0) * ((v - a0) / (a1 - a0))

def set_mag(x, y, mag):
    d = math.hypot(x, y)
    if d == 0:
        return 0.0, 0.0
    return x / d * mag, y / d * mag

def from_angle(a, mag=1.0):
    return math.cos(a) * mag, math.sin(a) * mag

def influence_for_distance(d, width):
    return clamp(map_range(d, 0, width * INFLUENCE_REACH, 1.0, 0.0), 0.0, 1.0)

def alpha_for_distance(d, width):
    """1.0 at the pointer, 0.12 at 0.7*width, never below 0.06."""
    return clamp(map_range(d, 0, width * INFLUENCE_REACH, 1.0, 0.12), 0.06, 1.0)

def catmull_rom(p0, p1, p2, p3, steps=CURVE_STEPS):
    """Points of the Catmull-Rom segment between p1 and p2."""
    pts = []
    for i in range(steps + 1):
        t = i / steps
        t2, t3 = t * t, t * t * t
        pts.append(tuple(
            0.5 * (2 * p1[k] + (p2[k] - p0[k]) * t
                   + (2 * p0[k] - 5 * p1[k] + 4 * p2[k] - p3[k]) * t2
                   + (3 * p1[k] - p0[k] - 3 * p2[k] + p3[k]) * t3)
            for k in (0, 1)))
    return pts


# ---------- presets ----------
class Preset:
    def __init__(self, name, hue, sat, bright, speed, noise_scale, particle_size):
        if not 0 <= sat <= 100 or not 0 <= bright <= 100:
            raise ValueError(f"preset {name!r}: saturation/brightness must be in 0..100")
        if speed <= 0 or noise_scale <= 0 or particle_size <= 0:
            raise ValueError(f"preset {name!r}: speed, noise_scale and particle_size must be > 0")
        self.name = name
        self.hue = hue % 360
        self.sat = sat
        self.bright = bright
        self.speed = speed
        self.noise_scale = noise_scale
        self.particle_size = particle_size

    def as_dict(self):
        return {'name': self.name, 'hue': self.hue, 'sat': self.sat, 'bright': self.bright,
                'speed': self.speed, 'noise_scale': self.noise_scale,
                'particle_size': self.particle_size}

    def copy(self):
        return Preset(**self.as_dict())

    def __eq__(self, other):
        return isinstance(other, Preset) and self.as_dict() == other.as_dict()

    def __repr__(self):
        return f"Preset({self.name!r}, hue={self.hue}, speed={self.speed})"

PRESETS = (
    Preset('amber',  hue=42,  sat=85, bright=70, speed=0.8, noise_scale=0.0014, particle_size=3.0),
    Preset('cobalt', hue=200, sat=70, bright=85, speed=1.2, noise_scale=0.002,  particle_size=2.2),
    Preset('violet', hue=280, sat=65, bright=90, speed=0.6, noise_scale=0.001,  particle_size=3.8),
    Preset('ember',  hue=30,  sat=90, bright=95, speed=1.5, noise_scale=0.0026, particle_size=1.8),
)


# ---------- pointer ----------
class Pointer:
    def __init__(self, x=0.0, y=0.0, pressed=False):
        self.pos = [float(x), float(y)]
        self.pressed = pressed

    @classmethod
    def from_mouse(cls):
        x, y = pygame.mouse.get_pos()
        return cls(x, y, pressed=pygame.mouse.get_pressed()[0])

    def distance(self, pos):
        return math.hypot(pos[0] - self.pos[0], pos[1] - self.pos[1])


# ---------- shapes ----------
TRIANGLE_ANGLES = np.array([-HALF_PI + k * TWO_PI / 3 for k in range(3)])

def triangle_warp(noise, seed):
    """Per-vertex (x, y) radius noise for the triangle; depends only on noise seed and particle seed."""
    return (noise.sample(TRIANGLE_ANGLES + seed).tolist(),
            noise.sample(TRIANGLE_ANGLES - seed).tolist())

def shape_points(name, s, t, seed, warp=None):
    """Unrotated polygon vertices around the origin for square/triangle/star."""
    points = []
    if name == 'square':
        for k in range(4):
            a = k * HALF_PI
            points.append((math.cos(a) * s * (1 + math.sin(t + seed + a) * 0.12),
                           math.sin(a) * s * (1 + math.cos(t + seed + a) * 0.12)))
    elif name == 'triangle':
        warp_x, warp_y = warp
        for a, wx, wy in zip(TRIANGLE_ANGLES.tolist(), warp_x, warp_y):
            points.append((math.cos(a) * s * (1 + wx * 0.25),
                           math.sin(a) * s * (1 + wy * 0.25)))
    elif name == 'star':
        for k in range(10):
            a = k * math.pi / 5
            r = s * 1.15 if k % 2 == 0 else s * 0.45
            points.append((math.cos(a) * r * (1 + math.sin(t * 2 + seed + a) * 0.12),
                           math.sin(a) * r * (1 + math.cos(t * 2 + seed + a) * 0.12)))
    return points

def place_points(points, pos, rot):
    c, s = math.cos(rot), math.sin(rot)
    return [(pos[0] + x * c - y * s, pos[1] + x * s + y * c) for x, y in points]

def draw_shape(surface, name, pos, s, rot, t, seed, color, warp=None):
    if name == 'circle':
        pygame.draw.circle(surface, color, (int(pos[0]), int(pos[1])), max(1, int(s / 2)))
        return
    points = place_points(shape_points(name, s, t, seed, warp), pos, rot)
    if len(points) >= 3:
        pygame.draw.polygon(surface, color, points)


# ---------- particle ----------
class Particle:
    def __init__(self, field):
        rng = field.rng
        # seeded across the canvas but biased toward a virtual grid cell
        gx = rng.randrange(GRID_COLS)
        gy = rng.randrange(GRID_ROWS)
        self.pos = [map_range(gx + rng.random(), 0, GRID_COLS, 0, field.width),
                    map_range(gy + rng.random(), 0, GRID_ROWS, 0, field.height)]
        self.prev = list(self.pos)
        self.vel = list(from_angle(rng.uniform(0, TWO_PI), 0.2))
        self.size = field.preset.particle_size * rng.uniform(0.7, 1.6)
        self.phase = rng.uniform(0, TWO_PI)
        self.life = rng.uniform(100, 10000)   # decremented, never used for despawn
        self.seed = rng.uniform(0, 1000)
        self._warp = None

    def flow_angle(self, field):
        ns = field.preset.noise_scale
        return field.noise.sample(self.pos[0] * ns, self.pos[1] * ns, field.t + self.seed) * TWO_PI * 2

    def update(self, field, pointer, angle=None):
        preset = field.preset
        if angle is None:
            angle = self.flow_angle(field)
        nx, ny = from_angle(angle)

        dx = pointer.pos[0] - self.pos[0]
        dy = pointer.pos[1] - self.pos[1]
        influence = influence_for_distance(math.hypot(dx, dy), field.width)

        if pointer.pressed:
            # drag: additive pull with no damping this frame
            px, py = set_mag(dx, dy, influence * 0.8)
            self.vel[0] += px
            self.vel[1] += py
        elif field.mode == WAVE:
            ox, oy = from_angle(self.phase + field.t * 2, 0.4)
            self.vel[0] = lerp(self.vel[0], nx * preset.speed * 0.6 + ox, 0.05)
            self.vel[1] = lerp(self.vel[1], ny * preset.speed * 0.6 + oy, 0.05)
        else:
            jx, jy = from_angle(field.rng.uniform(0, TWO_PI), 0.5)
            self.vel[0] = lerp(self.vel[0], nx * preset.speed * 1.4 + jx, 0.06)
            self.vel[1] = lerp(self.vel[1], ny * preset.speed * 1.4 + jy, 0.06)

        self.prev[0], self.prev[1] = self.pos
        self.pos[0] += self.vel[0]
        self.pos[1] += self.vel[1]
        self.wrap(field.width, field.height)

        self.phase += 0.01 * preset.speed
        self.life -= 0.01

    def wrap(self, width, height, margin=WRAP_MARGIN):
        """Toroidal wrap; a wrapped axis also moves prev so the trail does not span the canvas."""
        wrapped = False
        for axis, size in ((0, width), (1, height)):
            if self.pos[axis] < -margin:
                self.pos[axis] = size + margin
            elif self.pos[axis] > size + margin:
                self.pos[axis] = -margin
            else:
                continue
            self.prev[axis] = self.pos[axis]
            wrapped = True
        return wrapped

    def trail_points(self, t):
        jx, jy = math.sin(t + self.seed) * 3, math.cos(t + self.seed) * 3
        kx, ky = math.sin(-t + self.seed) * 3, math.cos(-t + self.seed) * 3
        return catmull_rom((self.prev[0] + jx, self.prev[1] + jy),
                           tuple(self.prev), tuple(self.pos),
                           (self.pos[0] + kx, self.pos[1] + ky))

    def render(self, layer, field, pointer, hue_noise=None):
        preset = field.preset
        if hue_noise is None:
            hue_noise = field.noise.sample(self.pos[0] * HUE_NOISE_SCALE, self.pos[1] * HUE_NOISE_SCALE, field.t)
        hue = (preset.hue + hue_noise * HUE_SPREAD) % 360
        alpha = alpha_for_distance(pointer.distance(self.pos), field.width)

        if field.mode == WAVE:
            color = hsb_color(hue, preset.sat, preset.bright, alpha * 0.8)
            width = max(1, int(round(self.size * 0.8)))
            pygame.draw.lines(layer, color, False, self.trail_points(field.t), width)
        else:
            color = hsb_color(hue, preset.sat, preset.bright, alpha)
            name = SHAPES[field.shape_index]
            warp = self.triangle_warp(field.noise) if name == 'triangle' else None
            draw_shape(layer, name, self.pos, self.size * 1.5,
                       field.t + self.seed, field.t, self.seed, color, warp)

    def triangle_warp(self, noise):
        if self._warp is None or self._warp[0] != noise.seed:
            self._warp = (noise.seed, triangle_warp(noise, self.seed))
        return self._warp[1]


# ---------- backdrop ----------
_backdrop_cache = {}
def backdrop_surface(size, preset):
    """Dark base plus six faint preset-tinted washes, built once per (size, preset colour)."""
    key = (size, preset.hue, preset.sat, preset.bright)
    if key not in _backdrop_cache:
        _backdrop_cache.clear()
        base = pygame.Surface(size)
        base.fill(hsb_color(*BACKDROP)[:3])
        tint = pygame.Surface(size, pygame.SRCALPHA)
        for i in range(6):
            tint.fill(hsb_color((preset.hue + i * 6) % 360, preset.sat * 0.45,
                                preset.bright * (0.95 - i * 0.08), 0.03))
            base.blit(tint, (0, 0))
        _backdrop_cache[key] = base
    return _backdrop_cache[key]

def draw_backdrop(surface, preset):
    bg = backdrop_surface(surface.get_size(), preset)
    surface.blit(bg, (0, 0))
    return bg


# ---------- grid ----------
class GridOverlay:
    """LeWitt-style lattice of soft half-arcs, nudged by noise and time."""
    def __init__(self, cols=GRID_COLS, rows=GRID_ROWS, margin=GRID_MARGIN, arc_points=17):
        self.cols, self.rows, self.margin = cols, rows, margin
        gx, gy = np.meshgrid(np.arange(cols + 1), np.arange(rows + 1), indexing='ij')
        self.gx = gx.astype(np.float64)
        self.gy = gy.astype(np.float64)
        self.arc = np.arange(arc_points) * (math.pi / (arc_points - 1))
        self._layer = None
        self._key = None

    def vertices(self, noise, t, width, height):
        """Array (cols+1, rows+1, arc_points, 2) of arc vertices in canvas space."""
        m = self.margin
        x = m + self.gx / self.cols * (width - 2 * m)
        y = m + self.gy / self.rows * (height - 2 * m)
        cx = x + np.sin(t * 0.2 + self.gx) * 6
        cy = y + np.cos(t * 0.2 + self.gy) * 6
        offset = noise.sample(self.gx * 0.06, self.gy * 0.06, t * 0.2) * 18 - 9
        r = 8 + np.sin(self.arc * 3 + (self.gx * 0.2 + self.gy * 0.2)[..., None] + t) * 4
        vx = cx[..., None] + np.cos(self.arc) * r + offset[..., None]
        vy = cy[..., None] + np.sin(self.arc) * r + offset[..., None]
        return np.stack([vx, vy], axis=-1)

    def draw(self, surface, noise, t, preset):
        """Blit the arc layer. It is redrawn once per GRID_REFRESH of time; returns True when redrawn."""
        size = surface.get_size()
        key = (size, preset.hue, preset.sat, noise.seed, int(t // GRID_REFRESH))
        redrawn = key != self._key
        if redrawn:
            if self._layer is None or self._layer.get_size() != size:
                self._layer = pygame.Surface(size, pygame.SRCALPHA)
            self._layer.fill((0, 0, 0, 0))
            color = hsb_color((preset.hue + 10) % 360, preset.sat * 0.2, 55, 0.035)
            verts = self.vertices(noise, t, size[0], size[1])
            for arc in verts.reshape(-1, len(self.arc), 2).tolist():
                pygame.draw.lines(self._layer, color, False, arc, 1)
            self._key = key
        surface.blit(self._layer, (0, 0))
        return redrawn


# ---------- HUD ----------
class HUD:
    PANEL = (10, 60, 320, 50)   # x, offset from bottom, w, h

    def __init__(self):
        self._fonts = None
        self._panel = None

    def lines(self, sim):
        status = (f"Mode: {sim.mode.upper()}  •  Shape: {SHAPES[sim.shape_index]}"
                  f"  •  Preset: {sim.preset_index + 1}")
        return status, CONTROLS_TEXT

    def draw(self, surface, sim):
        if self._fonts is None:
            if not pygame.font.get_init():
                pygame.font.init()
            self._fonts = (pygame.font.SysFont(None, 18), pygame.font.SysFont(None, 16))
        big, small = self._fonts
        x, from_bottom, w, h = self.PANEL
        H = surface.get_height()
        if self._panel is None:
            self._panel = pygame.Surface((w, h), pygame.SRCALPHA)
            pygame.draw.rect(self._panel, hsb_color(0, 0, 0, 0.35), self._panel.get_rect(), border_radius=8)
        surface.blit(self._panel, (x, H - from_bottom))

        status, controls = self.lines(sim)
        p = sim.preset
        for text, font, color, y in (
                (status, big, hsb_color((p.hue + 10) % 360, p.sat, p.bright, 0.9), H - 50),
                (controls, small, hsb_color(255, 100, 100, 0.85), H - 34)):
            img = font.render(text, True, color[:3])
            img.set_alpha(color[3])
            surface.blit(img, (18, y))


# ---------- simulation ----------
class Simulation:
    """The field: particles plus every piece of mutable sketch state."""
    def __init__(self, width, height, n=N_PARTICLES, seed=None):
        self.width = max(1, width)
        self.height = max(1, height)
        self.rng = random.Random(seed)
        self.noise = NoiseField(seed if seed is not None else self.rng.randrange(2 ** 31))
        self.mode = WAVE
        self.shape_index = 0
        self.t = 0.0
        self.preset_index = 0
        self.preset = PRESETS[0].copy()
        self.particles = [Particle(self) for _ in range(n)]
        self.grid = GridOverlay()
        self.hud = HUD()
        self._layer = None

    @property
    def shape(self):
        return SHAPES[self.shape_index]

    def positions(self):
        return np.array([p.pos for p in self.particles], dtype=np.float64).reshape(-1, 2)

    # ----- per frame -----
    def step(self, pointer, surface=None):
        self.update(pointer)
        if surface is not None:
            self.render(surface, pointer)

    def update(self, pointer):
        self.t += TIME_STEP * self.preset.speed
        if not self.particles:
            return
        pos = self.positions()
        seeds = np.array([p.seed for p in self.particles])
        ns = self.preset.noise_scale
        angles = np.atleast_1d(self.noise.sample(pos[:, 0] * ns, pos[:, 1] * ns, self.t + seeds)) * TWO_PI * 2
        for p, angle in zip(self.particles, angles.tolist()):
            p.update(self, pointer, angle=angle)

    def render(self, surface, pointer):
        draw_backdrop(surface, self.preset)
        self.grid.draw(surface, self.noise, self.t, self.preset)

        size = surface.get_size()
        if self._layer is None or self._layer.get_size() != size:
            self._layer = pygame.Surface(size, pygame.SRCALPHA)
        self._layer.fill((0, 0, 0, 0))
        if self.particles:
            pos = self.positions()
            hues = np.atleast_1d(self.noise.sample(pos[:, 0] * HUE_NOISE_SCALE, pos[:, 1] * HUE_NOISE_SCALE, self.t))
            for p, h in zip(self.particles, hues.tolist()):
                p.render(self._layer, self, pointer, hue_noise=h)
        surface.blit(self._layer, (0, 0))

        self.hud.draw(surface, self)

    # ----- commands -----
    def select_preset(self, i):
        if not 0 <= i < len(PRESETS):
            return False
        template = PRESETS[i]
        self.preset_index = i
        self.preset = template.copy()
        for p in self.particles:
            p.size = template.particle_size * self.rng.uniform(0.7, 1.5)
        return True

    def cycle_shape(self):
        self.shape_index = (self.shape_index + 1) % len(SHAPES)
        return self.shape_index

    def toggle_mode(self):
        self.mode = PARTICLE if self.mode == WAVE else WAVE
        return self.mode

    def on_click(self, pointer):
        self.cycle_shape()
        return self.burst(pointer)

    def burst(self, pointer, radius=CLICK_RADIUS):
        """Outward kick for every particle near the pointer; returns how many were hit."""
        hits = 0
        for p in self.particles:
            dx = p.pos[0] - pointer.pos[0]
            dy = p.pos[1] - pointer.pos[1]
            if math.hypot(dx, dy) >= radius:
                continue
            mag = self.rng.uniform(0.6, 2.2)
            if dx == 0 and dy == 0:
                kx, ky = from_angle(self.rng.uniform(0, TWO_PI), mag)
            else:
                kx, ky = set_mag(dx, dy, mag)
            p.vel[0] += kx
            p.vel[1] += ky
            hits += 1
        return hits

    def reseed(self, seed):
        self.rng.seed(seed)
        self.noise.reseed(seed)
        for p in self.particles:
            p.pos = [self.rng.uniform(0, self.width), self.rng.uniform(0, self.height)]
            p.prev = list(p.pos)
            p.vel = list(from_angle(self.rng.uniform(0, TWO_PI), 0.2))

    def resize(self, width, height):
        # a zero-sized window would divide by zero in the pointer falloff
        self.width = max(1, width)
        self.height = max(1, height)
