import math

WindowWidth = 800
WindowHeight = 800
WindowTitle = "Vertex Buffer Object wave demo"

#Definitions:
#Strip
#a run of vertices drawn as one connected primitive (quad strip, line strip or points)

#Slab
#STRIP_SIZE rows generated together into one partition of the backing storage

#Tile
#the whole surface, TILE_SIZE columns wide, TILE_SIZE / STRIP_SIZE slabs deep

#Backing storage
#one flat float array holding interleaved position + normal, either mapped
#from a buffer object on the GPU or allocated in system memory

SIZEOF_FLOAT = 4
FLOATS_PER_VERTEX = 6  # x, y, z, nx, ny, nz
VERTEX_STRIDE = FLOATS_PER_VERTEX * SIZEOF_FLOAT

STRIP_SIZE = 48
DEFAULT_TILE_SIZE = 9 * STRIP_SIZE
MAX_TILE_SIZE = 864

NUM_BUFFERS = 4
BUFFER_LENGTH = 1000000  # floats

SIN_ARRAY_SIZE = 1024

# Animation parameters
HICOEF = 0.06
LOCOEF = 0.10
HIFREQ = 6.1
LOFREQ = 2.5
PHASE_RATE = 0.02
PHASE2_RATE = -0.12
PHASE_LIMIT = 20 * math.pi

# Live adjustment steps
COEF_STEP = 0.005
FREQ_STEP = 0.1
RATE_STEP = 0.01

# Not a true surface normal, the z component stays constant
NORMAL_Z = 0.15

PROFILE_FRAMES = 30

# Projection
FOV = 60.0
NEAR_PLANE = 0.1
FAR_PLANE = 100.0

# Lighting and material
MATERIAL_AMBIENT = (0.1, 0.1, 0.0, 1.0)
MATERIAL_DIFFUSE = (0.6, 0.6, 0.1, 1.0)
MATERIAL_SPECULAR = (1.0, 1.0, 0.75, 1.0)
MATERIAL_SHININESS = 128.0
INFINITE_LIGHT_POSITION = (0.5, 0.0, 0.5, 0.0)
LOCAL_LIGHT_POSITION = (0.5, 0.0, -0.5, 1.0)

# Column-major, pulls the surface one unit away from the eye
MODELVIEW_MATRIX = (
    1.0, 0.0, 0.0, 0.0,
    0.0, 1.0, 0.0, 0.0,
    0.0, 0.0, 1.0, 0.0,
    0.0, 0.0, -1.0, 1.0,
)
