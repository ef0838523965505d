# Copyright (C) 2024 McAwesome (https://github.com/McAwesome123)
# This script is licensed under the GNU Affero General Public License version 3 or later.
# For more information, view the LICENSE file provided with this project
# or visit: https://www.gnu.org/licenses/agpl-3.0.en.html

"""Settings read from the environment (and .env)."""

import json
import os

from dotenv import load_dotenv

load_dotenv()

# The full version number including anything extra.
KCATBOT_VERSION_FULL = "1.2.0"
# Version number with only Major, Minor, and Patch version.
KCATBOT_VERSION_LONG = "1.2.0"
# Verison number with only Major and Minor version.
KCATBOT_VERSION_SHORT = "1.2"

KCATBOT_USER_AGENT = os.getenv("KCATBOT_USER_AGENT", "kcatbot/{VERSION_SHORT}")
KCATBOT_USER_AGENT = (
	KCATBOT_USER_AGENT.replace("{VERSION_FULL}", KCATBOT_VERSION_FULL)
	.replace("{VERSION_LONG}", KCATBOT_VERSION_LONG)
	.replace("{VERSION_SHORT}", KCATBOT_VERSION_SHORT)
)

# Some CDNs refuse anything that doesn't look like a browser.
DOWNLOAD_USER_AGENT = os.getenv(
	"DOWNLOAD_USER_AGENT",
	"Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
)

POCKETBASE_URL = os.getenv("POCKETBASE_URL", "https://kcat.pockethost.io")
POCKETBASE_TOKEN = os.getenv("POCKETBASE_TOKEN")
FILE_BASE_URL = os.getenv("FILE_BASE_URL", "https://kcat.pics")

CONTENTS_COLLECTION = "contents"
SETS_COLLECTION = "contents_sets"
MIRROR_LOOKUP_COLLECTION = "v1"
GROUPS_COLLECTION = "groups"
IDOLS_COLLECTION = "groups_idols"
UPLOADERS_COLLECTION = "uploaders"


def json_list_from_env(name: str) -> list[str]:
	"""Read a JSON list of ids from an environment variable."""
	value = json.loads(os.getenv(name, "[]"))
	return [str(i) for i in value]
