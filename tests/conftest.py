from __future__ import annotations

import json
import sys
from collections.abc import Iterable
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from zerocode.generator import ModelProvider
from zerocode.models import FileSet, GenerationSettings


class ScriptedProvider(ModelProvider):
    """Provider double that replays queued responses and records every call.

    Queue items are strings (returned) or exceptions (raised). Plan/repair calls
    and single-file calls have separate queues.
    """

    name = "scripted"
    default_model = "scripted-model"

    def __init__(
        self,
        plans: Iterable[object] = (),
        files: Iterable[object] = (),
        max_attempts: int = 1,
    ) -> None:
        super().__init__(max_attempts=max_attempts, retry_delay=0.0, sleep=lambda seconds: None)
        self.plans = list(plans)
        self.files = list(files)
        self.calls: list[dict[str, object]] = []

    def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int, json_mode: bool) -> str:
        self.calls.append(
            {"system": system_prompt, "user": user_prompt, "max_tokens": max_tokens, "json_mode": json_mode}
        )
        queue = self.plans if json_mode else self.files
        if not queue:
            raise AssertionError("ScriptedProvider ran out of responses")
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item  # type: ignore[return-value]

    @property
    def plan_calls(self) -> list[dict[str, object]]:
        return [call for call in self.calls if call["json_mode"]]

    @property
    def file_calls(self) -> list[dict[str, object]]:
        return [call for call in self.calls if not call["json_mode"]]


APP_TSX = """import React from 'react';
import { BrowserRouter, Routes, Route } from 'react-router-dom';
import Layout from './components/Layout';

const App: React.FC = () => {
  return (
    <BrowserRouter>
      <Layout>
        <Routes>
          <Route path="/" element={<h1>Home</h1>} />
        </Routes>
      </Layout>
    </BrowserRouter>
  );
};

export default App;
"""

MAIN_TSX = """import React from 'react';
import ReactDOM from 'react-dom/client';
import App from './App';
import './index.css';

ReactDOM.createRoot(document.getElementById('root')!).render(<App />);
"""

LAYOUT_TSX = """import React from 'react';

interface LayoutProps {
  children: React.ReactNode;
}

export default function Layout({ children }: LayoutProps) {
  return <main className="p-4">{children}</main>;
}
"""


@pytest.fixture
def complete_plan() -> dict[str, object]:
    return {
        "files": [
            {"path": "package.json", "type": "file", "content": json.dumps({"name": "demo", "private": True})},
            {"path": "tsconfig.json", "type": "file", "content": '{"compilerOptions": {"jsx": "react-jsx"}}'},
            {"path": "vite.config.ts", "type": "file", "content": "export default {};\n"},
            {"path": "tailwind.config.js", "type": "file", "content": "module.exports = { content: [] };\n"},
            {"path": "postcss.config.js", "type": "file", "content": "module.exports = { plugins: {} };\n"},
            {"path": "index.html", "type": "file", "content": '<div id="root"></div>\n'},
            {"path": "src/App.tsx", "type": "file", "content": APP_TSX},
            {"path": "src/main.tsx", "type": "file", "content": MAIN_TSX},
            {"path": "src/index.css", "type": "file", "content": "@tailwind base;\n"},
            {"path": "src/components/Layout.tsx", "type": "file", "content": LAYOUT_TSX},
        ],
        "dependencies": {"react": "^18.2.0", "react-dom": "^18.2.0", "react-router-dom": "^6.8.0"},
        "devDependencies": {
            "@types/react": "^18.2.0",
            "@types/react-dom": "^18.2.0",
            "@vitejs/plugin-react": "^4.0.0",
            "typescript": "^5.0.0",
            "vite": "^4.4.0",
            "tailwindcss": "^3.3.0",
        },
    }


@pytest.fixture
def complete_file_set(complete_plan) -> FileSet:
    return FileSet.from_structure(complete_plan)


@pytest.fixture
def settings() -> GenerationSettings:
    return GenerationSettings(provider="gemini")


@pytest.fixture
def scripted_provider_cls() -> type[ScriptedProvider]:
    return ScriptedProvider
