"""
Configuration constants and default values.
"""
import multiprocessing

# Earth Engine assets for the Landsat 8 Collection 1 TOA product family
EE_L8_TOA_T1 = "LANDSAT/LC08/C01/T1_TOA"
EE_L8_TOA_T2 = "LANDSAT/LC08/C01/T2_TOA"
EE_WATER_MASK_ASSET = "MODIS/MOD44W/MOD44W_005_2000_02_24"
EE_WATER_MASK_BAND = "water_mask"

# Band schema: 8 multispectral bands, 1 panchromatic band, 1 quality band
MULTISPECTRAL_BANDS = ("B1", "B2", "B3", "B4", "B5", "B6", "B7", "B9")
PAN_BAND = "B8"
QA_BAND = "BQA"
RGB_BANDS = ("B4", "B3", "B2")  # red, green, blue surrogates
COMPOSITE_BANDS = ("B2", "B3", "B4", "B8")

# BQA bit positions (Collection 1 Level-1 quality band).
# Product-version changes only touch this table, never the masking code.
QA_BITS = {
    "fill": 0,           # designated fill
    "terrain": 1,        # terrain occlusion / dropped pixel
    "cloud": 4,
    "cloud_shadow": 8,   # high bit of the 2-bit cloud shadow confidence
    "snow_ice": 10,      # high bit of the 2-bit snow/ice confidence
    "cirrus": 12,        # high bit of the 2-bit cirrus confidence (medium + high)
}
DEFAULT_QA_FLAGS = ("fill", "cloud", "cirrus")

# Colour correction
DEFAULT_GAMMA = (1.05, 1.08, 0.8)  # red, green, blue
PAN_SCALE_FACTOR = 512  # 8-bit pan: floor(reflectance * 512) clipped to [0, 255]

# Land/water compositing
WATER_FILL_COLOR = "000044"
DEFAULT_WATER_BUFFER_M = 2000.0
AUX_WATER_VALUE = 1  # MOD44W: 1 = water, 0 = land

# Export defaults
DEFAULT_SCALE = 15.0  # metres, pan-band resolution
MAX_PIXELS = 10_000_000_000_000
GEOTIFF_PROFILE = {
    "driver": "GTiff",
    "compress": "LZW",
    "tiled": True,
    "blockxsize": 512,
    "blockysize": 512,
    "bigtiff": "IF_SAFER",
}
OUTDIR_DEFAULT = "mosaic_outputs"

# Tile configuration
DEFAULT_TILE_PIX = 512
DEFAULT_WORKERS = min(multiprocessing.cpu_count(), 8)  # Auto-detect CPU count, cap at 8
DEFAULT_PARALLEL_SCALE = 1

# Region geometry densification before reprojection (degrees)
REGION_SEGMENT_DEG = 0.5

# Earth Engine download configuration
NODATA_SENTINEL = -9999.0  # value masked reflectance pixels are unmasked to
MAX_DOWNLOAD_SIZE_BYTES = 50331648  # 50MB limit for getDownloadURL
DOWNLOAD_RETRIES = 3
DOWNLOAD_RETRY_DELAY = 2  # seconds, with exponential backoff
DOWNLOAD_TIMEOUT = 300
