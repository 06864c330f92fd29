"""
Version information for antetown.
Updated by the release workflow.
"""

VERSION = "0.4.0"
BUILD_DATE = "dev"
COMMIT_HASH = "unknown"


def get_version_info():
    """Get formatted version information"""
    return {
        'version': VERSION,
        'build_date': BUILD_DATE,
        'commit_hash': COMMIT_HASH
    }
