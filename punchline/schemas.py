"""Request and response schemas for caption batch validation and repair."""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class TagInput(BaseModel):
    """Keywords already split into hard and soft tags."""

    hard: List[str] = Field(
        default_factory=list,
        description="Tags that must appear verbatim (names, brands). Casing is kept.",
    )
    soft: List[str] = Field(
        default_factory=list,
        description="Style hints that steer vocabulary but must never appear verbatim.",
    )


class BatchRequest(BaseModel):
    """One batch of raw generator output plus the context it was requested with."""

    raw_lines: List[str] = Field(
        default_factory=list,
        description="Candidate captions as returned by the generator. Missing lines are filled with fallbacks.",
    )
    category: str = Field(default="", description="Top-level content category (e.g., Celebrations).")
    subcategory: str = Field(default="", description="Subcategory used to pick the context lexicon (e.g., Birthday).")
    tone: str = Field(default="Humorous", description="Requested tone (Romantic, Savage, Playful, Sentimental, Humorous).")
    rating: Literal["G", "PG-13", "R", "Explicit"] = Field(
        default="PG-13",
        description="Content rating tier.",
    )
    tags: TagInput = Field(default_factory=TagInput, description="Pre-split tags.")
    tag_text: Optional[str] = Field(
        default=None,
        description='Raw comma-separated tag string; quoted or @-prefixed tokens are hard, e.g. "Jesse", birthday.',
    )
    require_pop_culture_entity: bool = Field(
        default=False,
        description="Place one fresh pop culture reference in the batch.",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "raw_lines": [
                    "My cake collapsed but the candles survived",
                    "Another year older and the wifi still hates me",
                    "Blowing out candles is my cardio",
                    "Birthday plans include a nap and regret",
                ],
                "category": "Celebrations",
                "subcategory": "Birthday",
                "tone": "Humorous",
                "rating": "PG-13",
                "tag_text": '"Jesse", old',
                "require_pop_culture_entity": False,
            }
        }
    }


class LineReport(BaseModel):
    """Verdict for one finished line."""

    model_config = ConfigDict(populate_by_name=True)

    index: int = Field(..., ge=0, description="Line position in the batch.")
    lane: str = Field(default="", description="Length bucket the line was fitted to, e.g. [40,60].")
    passed: bool = Field(..., alias="pass", description="True when the line meets every hard rule.")
    score: int = Field(default=0, ge=0, le=100, description="Per-line quality score.")
    reasons: List[str] = Field(default_factory=list, description="Issue codes in category.detail form.")


class BatchReport(BaseModel):
    """Diagnostic report for a batch. Informational only."""

    per_line: List[LineReport] = Field(default_factory=list)
    batch_reasons: List[str] = Field(default_factory=list, description="Issues that belong to the batch as a whole.")
    sub_scores: Dict[str, int] = Field(default_factory=dict, description="format, context, voice, tags and delivery scores.")
    issue_categories: List[str] = Field(default_factory=list)
    overall_score: int = Field(..., ge=0, le=100, description="Rounded mean of the sub-scores.")
    retry_recommended: bool = Field(..., description="Ask the generator for a fresh batch.")


class TagSuggestionReport(BaseModel):
    """An unsafe tag that was dropped, with safe alternatives to offer the user."""

    original_tag: str
    alternatives: List[str] = Field(default_factory=list)
    reason: str = ""


class BatchResponse(BaseModel):
    """Accepted (or best-effort) batch with its report."""

    lines: List[str] = Field(..., description="Final captions, one per length bucket.")
    report: BatchReport
    voices: List[Optional[str]] = Field(default_factory=list, description="Voice id rendered on each line.")
    entity: Optional[str] = Field(default=None, description="Pop culture entity placed in this batch, if any.")
    state: str = Field(..., description="Terminal pipeline state: ACCEPTED or RETRY_REQUESTED.")
    tag_suggestions: List[TagSuggestionReport] = Field(
        default_factory=list,
        description="Tags dropped as unsafe, each with suggested replacements.",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "lines": [
                    "Honestly my cake collapsed with Jesse and then the candles survived.",
                ],
                "report": {
                    "per_line": [{"index": 0, "lane": "[61,80]", "pass": True, "score": 97, "reasons": []}],
                    "batch_reasons": [],
                    "sub_scores": {"format": 100, "context": 100, "voice": 100, "tags": 100, "delivery": 90},
                    "issue_categories": [],
                    "overall_score": 98,
                    "retry_recommended": False,
                },
                "voices": ["deadpan"],
                "entity": None,
                "state": "ACCEPTED",
                "tag_suggestions": [],
            }
        }
    }
