"""Runtime defaults, validation manifests, and environment overrides."""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_FRAMEWORK = "React"
DEFAULT_STYLING = "Tailwind CSS"
DEFAULT_STATE_MANAGEMENT = "React Hooks"
DEFAULT_BUILD_TOOL = "Vite"
DEFAULT_PROVIDER = os.environ.get("ZEROCODE_PROVIDER", "gemini")

GEMINI_MODEL = os.environ.get("ZEROCODE_GEMINI_MODEL", "gemini-2.5-flash")
CLAUDE_MODEL = os.environ.get("ZEROCODE_CLAUDE_MODEL", "claude-3-7-sonnet-20250219")

# Sampling is pinned low so repeated requests stay close to each other.
TEMPERATURE = 0.1
PLAN_MAX_TOKENS = 15000
FILE_MAX_TOKENS = 4000

PROVIDER_MAX_ATTEMPTS = int(os.environ.get("ZEROCODE_PROVIDER_ATTEMPTS", 3))
PROVIDER_RETRY_DELAY = float(os.environ.get("ZEROCODE_RETRY_DELAY", 1.0))
CODEGEN_MAX_ATTEMPTS = 3
REPAIR_MAX_ROUNDS = int(os.environ.get("ZEROCODE_REPAIR_ROUNDS", 3))

DEFAULT_DB_PATH = Path(os.environ.get("ZEROCODE_DB_PATH", ".zerocode/generations.db"))
DEFAULT_OUTPUT_ROOT = Path("generated")

# Name the preview sandbox registers components under instead of module exports.
SANDBOX_GLOBAL = "window"

REQUIRED_FILES = (
    "package.json",
    "tsconfig.json",
    "vite.config.ts",
    "tailwind.config.js",
    "postcss.config.js",
    "index.html",
    "src/App.tsx",
    "src/main.tsx",
    "src/index.css",
)

REQUIRED_DEPENDENCIES = (
    "react",
    "react-dom",
    "react-router-dom",
)

REQUIRED_DEV_DEPENDENCIES = (
    "@types/react",
    "@types/react-dom",
    "@vitejs/plugin-react",
    "typescript",
    "vite",
    "tailwindcss",
)

FORBIDDEN_CONTENT = (
    "// TODO",
    "// Add logic here",
    "// Implementation needed",
    "// Placeholder",
    "TODO:",
    "FIXME:",
    "PLACEHOLDER_",
    "ADD_YOUR_",
)

DEFAULT_DEPENDENCIES = {
    "react": "^18.2.0",
    "react-dom": "^18.2.0",
    "react-router-dom": "^6.8.0",
}

DEFAULT_DEV_DEPENDENCIES = {
    "@types/react": "^18.2.0",
    "@types/react-dom": "^18.2.0",
    "@vitejs/plugin-react": "^4.0.0",
    "typescript": "^5.0.0",
    "vite": "^4.4.0",
    "tailwindcss": "^3.3.0",
    "postcss": "^8.4.24",
    "autoprefixer": "^10.4.14",
}

# Directories never read back into a file set.
IGNORED_DIRS = frozenset({"node_modules", ".git", "dist", ".zerocode"})
IGNORED_FILES = frozenset({".DS_Store"})
