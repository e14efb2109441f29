class Params:
    """
    All tunable knobs live here so you don't hunt through code.
    """
    def __init__(self):
        # Default render config
        self.default_color = "#a855f7"
        self.default_count = 5000
        self.default_size = 0.12
        self.default_shape = "Saturn"
        self.max_particles = 20000

        # Spawn noise: current starts uniform in [-spawn_extent, spawn_extent]
        self.spawn_extent = 5.0

        # Relaxation (per second)
        self.idle_rate = 3.0        # stiff return to rest
        self.active_rate = 1.5      # softer while a gesture is active

        # Rotation speeds (rad / s of elapsed time)
        self.target_spin = 0.1      # feeds the physics
        self.frame_spin = 0.05      # cosmetic, whole buffer

        # Hand interaction
        self.cursor_scale = 5.0     # control position [-1,1] -> world units
        self.repel_radius = 5.0
        self.repel_gain = 5.0
        self.attract_radius = 8.0
        self.attract_blend = 0.1

        # Control snapshots older than this read as "no hand"
        self.control_stale_after = 0.5

        # Buddha rejection sampling cap
        self.max_rejection_rounds = 64

        # Tick loop
        self.tick_hz = 60.0
        self.viewer_send_timeout = 0.25   # a viewer slower than this is dropped

        # Shape generation service
        self.gen_model = "gemini-2.5-flash"
        self.gen_base_url = "https://generativelanguage.googleapis.com/v1beta"
        self.gen_timeout = 30.0
        self.gen_points = 100


DEFAULT = Params()
