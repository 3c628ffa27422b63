"""
Constants
Centralised storage for names and patterns shared by the pipeline and the API.
"""
import re

# Reserved variable always bound to the build root during env expansion
BUILD_ROOT_VAR = "BUILD_ROOT"

# Project names double as file names and URL path segments
PROJECT_NAME_PATTERN = r"^[-A-Za-z_0-9]+$"
PROJECT_NAME_RE = re.compile(PROJECT_NAME_PATTERN)

PROJECTS_DIR = "projects"
BUILDS_DIR = "builds"
RECORDS_DIR = "records"

PROJECT_FILE_SUFFIXES = (".json", ".yaml", ".yml")

# Fingerprint section headers
FINGERPRINT_COMPONENTS_HEADER = "Components:\n"
FINGERPRINT_STEPS_HEADER = "Steps:\n"
