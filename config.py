"""
Configuration constants for the voxel filter pipeline.
All tunable defaults and parallelism thresholds are centralized here.
"""

# ==========================================
# Logging
# ==========================================
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL = "INFO"

# ==========================================
# Chunked Processing
# ==========================================

# Grids with at least this many voxels are split into halo chunks
PARALLEL_MIN_VOXELS = 2_000_000
CHUNK_SHAPE_3D = (64, 128, 128)   # Core chunk shape for 3-D grids
CHUNK_SHAPE_2D = (512, 512)       # Core chunk shape for 2-D grids
MAX_WORKERS = 4                   # Threads per stage

# ==========================================
# Geometry
# ==========================================
DIRECTION_TOLERANCE = 1e-6        # Orthonormality check for direction cosines

# ==========================================
# Morphology
# ==========================================
DEFAULT_RADIUS = 1
DEFAULT_SHAPE = "ball"            # ball | box

# ==========================================
# Gaussian Derivatives
# ==========================================
DEFAULT_SIGMA = 0.5               # Physical units
GAUSSIAN_TRUNCATE = 4.0           # Kernel half-width in standard deviations
GAUSSIAN_MODE = "nearest"

# ==========================================
# Perona-Malik Diffusion
# ==========================================
DEFAULT_DIFFUSION_ITERATIONS = 5
DEFAULT_CONDUCTANCE = 1.0
DIFFUSION_TIME_STEP_FACTOR = 0.5  # Default step = factor * 1/(2D)

# ==========================================
# Intensity
# ==========================================
DEFAULT_LOWER_QUANTILE = 0.05
DEFAULT_UPPER_QUANTILE = 0.95

# ==========================================
# Phantoms (CLI / tests)
# ==========================================
PHANTOM_SIZE = 64
PHANTOM_FOREGROUND = 1.0
PHANTOM_BACKGROUND = 0.0
