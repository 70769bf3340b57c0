"""
Anchor watch replay configuration
"""

# Outlier gate configuration
GATE_CONFIG = {
    "min_time_delta_s": 0.5,          # Shortest accepted fix spacing (s)
    "max_time_delta_s": 300.0,        # Longest accepted fix spacing (s)
    "max_accuracy_m": 50.0,           # Hard accuracy ceiling (m)
    "preferred_accuracy_m": 10.0,     # Soft accuracy threshold (m)
    "max_poor_accuracy_streak": 3,    # Consecutive soft-poor fixes tolerated
    "max_speed_knots": 50.0,          # Hard speed ceiling (knots)
    "reasonable_speed_mps": 10.0,     # Above this, both fixes must be precise
    "max_acceleration_mps2": 5.0,     # Implied acceleration ceiling
}

# Kalman estimator configuration
KALMAN_CONFIG = {
    "accel_noise_density": 1.0,       # q (m²/s³)
    "initial_vel_variance": 25.0,     # ±5 m/s
    "min_accuracy_m": 1.0,
    "max_accuracy_m": 100.0,
    "max_time_gap_s": 30.0,           # Reinitialize beyond this gap
    "default_accuracy_m": 10.0,       # Used when a fix reports no accuracy
}

# Weighted smoother configuration
SMOOTHER_CONFIG = {
    "window_size": 5,
    "warmup_samples": 3,
    "time_decay_s": 5.0,
}

# Anchor session defaults
ANCHOR_CONFIG = {
    "default_radius_m": 30.0,         # Used with --anchor-first when --radius is omitted
}

# Output configuration
OUTPUT_CONFIG = {
    "enable_console_print": True,     # Print filtered locations
    "print_interval": 10,             # Print every Nth accepted fix
}

# Logging configuration
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
