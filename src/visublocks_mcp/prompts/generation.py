"""Prompt templates and request assembly for Remotion project generation.

REMOTION_SYSTEM — system instruction for ``generate_project``: Remotion
primer, output JSON shape and robustness rules.
PARAM_EXTRACTION_SYSTEM — system instruction for ``blocks_create``: pick three
user-facing params from a project's source files.
build_generation_prompt — user message: free text, guidance image, one
context section per block usage and the duration hint.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

from ..flatten import explain_sentences
from ..models.usage import BlockUsage

REMOTION_SYSTEM = """\
# About Remotion

Remotion is a framework that can create videos programmatically.
It is based on React.js. All output should be valid React code and be written in TypeScript.

# Project structure

A Remotion Project consists of an entry file, a Root file and any number of React component files.
A project can be scaffolded using the "npx create-video@latest --blank" command.
The entry file is usually named "src/index.ts" and looks like this:

import {registerRoot} from 'remotion';
import {Root} from './Root';

registerRoot(Root);

The Root file is usually named "src/Root.tsx" and looks like this:

import {Composition} from 'remotion';
import {MyComp} from './MyComp';

export const Root: React.FC = () => {
  return (
    <>
      <Composition
        id="MyComp"
        component={MyComp}
        durationInFrames={120}
        width={1920}
        height={1080}
        fps={30}
        defaultProps={{}}
      />
    </>
  );
};

A <Composition> defines a video that can be rendered. It consists of a React "component", an "id", a "durationInFrames", a "width", a "height" and a frame rate "fps".
The default frame rate should be 30.
The default height should be 1080 and the default width should be 1920.
The default "id" should be "MyComp".
The "defaultProps" must be in the shape of the React props the "component" expects.

Inside a React "component", one can use the "useCurrentFrame()" hook to get the current frame number.
Frame numbers start at 0.

export const MyComp: React.FC = () => {
  const frame = useCurrentFrame();
  return <div>Frame {frame}</div>;
};

# Component Rules

Inside a component, regular HTML and SVG tags can be returned.
There are special tags for video and audio.
Those special tags accept regular CSS styles.

If a video is included in the component it should use the "<OffthreadVideo>" tag.

import {OffthreadVideo} from 'remotion';

export const MyComp: React.FC = () => {
  return (
    <div>
      <OffthreadVideo
        src="https://remotion.dev/bbb.mp4"
        style={{width: '100%'}}
      />
    </div>
  );
};

If an non-animated image is included In the component it should use the "<Img>" tag.

import {Img} from 'remotion';

export const MyComp: React.FC = () => {
  return <Img src="https://remotion.dev/logo.png" style={{width: '100%'}} />;
};

If an animated GIF is included, the "@remotion/gif" package should be installed and the "<Gif>" tag should be used.

import {Gif} from '@remotion/gif';

export const MyComp: React.FC = () => {
  return (
    <Gif
      src="https://media.giphy.com/media/l0MYd5y8e1t0m/giphy.gif"
      style={{width: '100%'}}
    />
  );
};

If audio is included, the "<Audio>" tag should be used.

import {Audio} from 'remotion';

export const MyComp: React.FC = () => {
  return <Audio src="https://remotion.dev/audio.mp3" />;
};

Asset sources can be specified as either a Remote URL or an asset that is referenced from the "public/" folder of the project.
If an asset is referenced from the "public/" folder, it should be specified using the "staticFile" API from Remotion

import {Audio, staticFile} from 'remotion';

export const MyComp: React.FC = () => {
  return <Audio src={staticFile('audio.mp3')} />;
};

Audio has a "trimBefore" prop that trims the left side of a audio by a number of frames.
Audio has a "trimAfter" prop that limits how long a audio is shown.
Audio has a "volume" prop that sets the volume of the audio. It accepts values between 0 and 1.

If two elements should be rendered on top of each other, they should be layered using the "AbsoluteFill" component from "remotion".

import {AbsoluteFill} from 'remotion';

export const MyComp: React.FC = () => {
  return (
    <AbsoluteFill>
      <AbsoluteFill style={{background: 'blue'}}>
        <div>This is in the back</div>
      </AbsoluteFill>
      <AbsoluteFill style={{background: 'blue'}}>
        <div>This is in front</div>
      </AbsoluteFill>
    </AbsoluteFill>
  );
};

Any Element can be wrapped in a "Sequence" component from "remotion" to place the element later in the video.

import {Sequence} from 'remotion';

export const MyComp: React.FC = () => {
  return (
    <Sequence from={10} durationInFrames={20}>
      <div>This only appears after 10 frames</div>
    </Sequence>
  );
};

For displaying multiple elements after another, the "Series" component from "remotion" can be used.

import {Series} from 'remotion';

export const MyComp: React.FC = () => {
  return (
    <Series>
      <Series.Sequence durationInFrames={20}>
        <div>This only appears immediately</div>
      </Series.Sequence>
      <Series.Sequence durationInFrames={30}>
        <div>This only appears after 20 frames</div>
      </Series.Sequence>
      <Series.Sequence durationInFrames={30} offset={-8}>
        <div>This only appears after 42 frames</div>
      </Series.Sequence>
    </Series>
  );
};

Remotion needs all of the React code to be deterministic. Therefore, it is forbidden to use the Math.random() API.
If randomness is requested, use random(seed) from 'remotion'.

import {random} from 'remotion';

export const MyComp: React.FC = () => {
  return <div>Random number: {random('my-seed')}</div>;
};

Use interpolate() and spring() helpers as needed.

# Output Schema
Return ONLY a JSON object with this exact shape:
{
  "kind": "remotion-project",
  "files": {
    "src/index.ts": string,
    "src/Root.tsx": string,
    "src/MyComp.tsx": string
  },
  "compositionId": "MyComp",
  "width": 1920,
  "height": 1080,
  "fps": 30,
  "durationInFrames": 120
}

No markdown code fences or comments outside code. Only JSON.

# Robustness rules (avoid runtime errors)
- Do not reference identifiers that are not declared (e.g., brandOpacity). Declare every variable and constant you use within the returned files.
- If using arrays such as colors, declare them locally (e.g., const colors = ['#6ea8fe', '#a07bff', '#56d364']).
- Avoid reading properties of possibly undefined variables (e.g., colors[i % colors.length] requires colors to be defined and non-empty).
- The returned files must be self-contained and compile in strict TypeScript without additional imports. Keep it single-file for MyComp unless explicitly asked otherwise."""

PARAM_EXTRACTION_SYSTEM = """\
Analyze the given Remotion project files and extract exactly 3 high-impact, user-facing \
parameters that best control the animation (for example: color, speed/duration, title/text, \
size). Return ONLY JSON in this shape:
{
  "id": string,
  "name": string,
  "params": [
    {"name": string, "type": "color" | "text" | "number" | "select", "default": any, "explain": string}
  ]
}
Rules:
- "name" is a concise human-readable block name.
- The 3 parameters must be specific to the animation semantics found in the code.
- The explain string must be a short natural-language sentence template describing how the \
parameter modifies the block, and must include the placeholder {value} where the value will be \
substituted (e.g., "make the color of the square {value}" or "set the spin speed to {value}")."""

DEFAULT_BASE_PROMPT = (
    "Create a Remotion video based on the following blocks and effects. Combine them coherently."
)

CONTEXT_DATA_PREVIEW_CHARS = 500

DURATION_HINT = (
    "Target total duration: ~{seconds} seconds. Use fps={fps} to compute durationInFrames "
    "and allocate time proportionally across blocks."
)


def duration_hint(n_blocks: int, seconds_per_block: float) -> int:
    """Total target seconds; a prompt without blocks still counts as one."""
    return max(1, round((n_blocks or 1) * seconds_per_block))


def _param_line(usage: BlockUsage) -> str:
    return ", ".join(
        f"{p.key}={json.dumps(p.value if p.value is not None else p.default, ensure_ascii=False)}"
        for p in usage.params
    )


def _files_dump(project: object) -> str:
    files = project.get("files") if isinstance(project, dict) else None
    if not isinstance(files, dict):
        return ""
    return "\n\n".join(f"--- {path} ---\n{content}" for path, content in files.items())


def block_context(position: int, usage: BlockUsage) -> str:
    """Context section for the *position*-th (1-based) block usage."""
    lines = [f"Block {position}: {usage.name} (id:{usage.id})", f"Parameters: {_param_line(usage)}"]
    effects = explain_sentences(usage, fallback=True)
    if effects:
        lines.append("Effects:\n" + "\n".join(effects))
    if usage.context and usage.context.url:
        lines.append(f"Context URL: {usage.context.url}")
    if usage.context and usage.context.data:
        preview = usage.context.data[:CONTEXT_DATA_PREVIEW_CHARS]
        lines.append(f"Context Attachment (data URL start):\n{preview}...")
    files = _files_dump(usage.project)
    if files:
        lines.append(f"Files:\n{files}")
    return "\n".join(lines)


def build_blocks_context(usages: Sequence[BlockUsage]) -> str:
    return "\n\n".join(block_context(i, usage) for i, usage in enumerate(usages, start=1))


GUIDANCE_ATTACHED = "Guidance image: attached to this message. Follow its layout, palette and mood."


def build_generation_prompt(
    prompt: str,
    usages: Sequence[BlockUsage],
    *,
    guidance_image: str = "",
    image_attached: bool = False,
    duration_hint_sec: int = 0,
    fps: int = 30,
) -> str:
    """Assemble the user message sent with :data:`REMOTION_SYSTEM`.

    Sections (each omitted when empty): the prompt, or the default base
    prompt when only blocks were given; the guidance image, inline as text
    or as a pointer to an attached image part; the per-block context; the
    duration hint.
    """
    base = prompt.strip() or (DEFAULT_BASE_PROMPT if usages else "")
    blocks_ctx = build_blocks_context(usages)
    if image_attached:
        guidance = GUIDANCE_ATTACHED
    elif guidance_image:
        guidance = f"Guidance image (data URL follows):\n{guidance_image}"
    else:
        guidance = ""
    sections = [
        base,
        guidance,
        f"Blocks Context:\n{blocks_ctx}" if blocks_ctx else "",
        DURATION_HINT.format(seconds=duration_hint_sec, fps=fps) if duration_hint_sec else "",
    ]
    return "\n\n".join(s for s in sections if s)
