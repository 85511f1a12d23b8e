"""Remotion project model — the shape the generation backend must return.

Only the envelope is validated; the TSX sources are opaque strings.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

REQUIRED_FILES = ("src/index.ts", "src/Root.tsx")


class RemotionProject(BaseModel):
    """Generated project: entry, root and composition files plus render settings."""

    model_config = ConfigDict(populate_by_name=True, title="RemotionProject")

    kind: Literal["remotion-project"] = "remotion-project"
    files: dict[str, str]
    composition_id: str = Field(default="MyComp", alias="compositionId")
    width: int = 1920
    height: int = 1080
    fps: int = 30
    duration_in_frames: int = Field(default=150, alias="durationInFrames", ge=1)

    @field_validator("files")
    @classmethod
    def _has_entry_files(cls, files: dict[str, str]) -> dict[str, str]:
        missing = [f for f in REQUIRED_FILES if not isinstance(files.get(f), str)]
        if missing:
            raise ValueError(f"Project is missing {', '.join(missing)}")
        return files


_FALLBACK_COMP = """\
import React from 'react';
import {AbsoluteFill, interpolate, useCurrentFrame, useVideoConfig} from 'remotion';
export const MyComp: React.FC = () => {
  const frame = useCurrentFrame();
  const {durationInFrames} = useVideoConfig();
  const progress = interpolate(frame, [0, durationInFrames], [0, 100], {extrapolateLeft: 'clamp', extrapolateRight: 'clamp'});
  return (
    <AbsoluteFill style={{background: 'linear-gradient(135deg,#0b0f14,#0a0e15)'}}>
      <div style={{display:'flex',height:'100%',alignItems:'center',justifyContent:'center',gap:20}}>{[0,1,2].map(i=>{
        const y = interpolate(frame + i*5, [0, 30, 60], [0, -40, 0], {extrapolateLeft:'clamp', extrapolateRight:'clamp'});
        return <div key={i} style={{width:80,height:80,borderRadius:16,background:i===1?'#a07bff':'#6ea8fe', transform:`translateY(${y}px)`}}/>;})}</div>
      <div style={{position:'absolute', left:20, right:20, bottom:30, height:10, border:'1px solid rgba(255,255,255,0.3)', borderRadius:6}}>
        <div style={{height:'100%', width: progress + '%', background:'#6ea8fe', borderRadius:6}}/>
      </div>
    </AbsoluteFill>
  );
};
"""

FALLBACK_PROJECT = RemotionProject(
    files={
        "src/index.ts": "import {registerRoot} from 'remotion';\nimport {Root} from './Root';\nregisterRoot(Root);\n",
        "src/Root.tsx": (
            "import React from 'react';\n"
            "import {Composition} from 'remotion';\n"
            "import {MyComp} from './MyComp';\n"
            "export const Root: React.FC = () => {\n"
            "  return (\n"
            "    <>\n"
            '      <Composition id="MyComp" component={MyComp} durationInFrames={150} '
            "width={1920} height={1080} fps={30} defaultProps={{}} />\n"
            "    </>\n"
            "  );\n"
            "};\n"
        ),
        "src/MyComp.tsx": _FALLBACK_COMP,
    },
    duration_in_frames=150,
)
