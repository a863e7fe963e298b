"""
Normalized candidate records built from backend search matches.

A Candidate is rebuilt from every response; nothing here is persisted.
"""

from dataclasses import dataclass, field

from .schemas import ExperienceEntry, ExtractedInfo, SearchMatch

MATCHING_SKILLS_LIMIT = 5


@dataclass(frozen=True)
class Candidate:
    id: str
    name: str
    file_name: str
    score: float
    skills: list[str] = field(default_factory=list)
    experience: list[ExperienceEntry] = field(default_factory=list)
    education: list[ExperienceEntry] = field(default_factory=list)
    email: str | None = None
    phone: str | None = None
    summary: str | None = None
    relevant_text: str | None = None
    matching_skills: list[str] = field(default_factory=list)
    experience_level: str = "junior"
    combined_score: float | None = None


def determine_experience_level(info: ExtractedInfo | None) -> str:
    """Rough seniority guess from the extracted summary and experience count."""
    experience = info.experience if info else []
    summary = (info.summary or "").lower() if info else ""

    if "senior" in summary or len(experience) > 3:
        return "senior"
    if "lead" in summary or "manager" in summary:
        return "lead"
    if len(experience) > 1:
        return "mid"
    return "junior"


def extract_matching_skills(match: SearchMatch) -> list[str]:
    # TODO: compare against the job's required skills once the backend returns them per match
    return match.extracted_info.skills[:MATCHING_SKILLS_LIMIT]


def to_candidate(match: SearchMatch, combined_score: float | None = None) -> Candidate:
    info = match.extracted_info
    return Candidate(
        id=match.id,
        name=info.name or "Unknown",
        file_name=match.file_name,
        score=match.score,
        skills=list(info.skills),
        experience=list(info.experience),
        education=list(info.education),
        email=info.email,
        phone=info.phone,
        summary=info.summary,
        relevant_text=match.relevant_text,
        matching_skills=extract_matching_skills(match),
        experience_level=determine_experience_level(info),
        combined_score=combined_score,
    )


def format_candidates(matches: list[SearchMatch]) -> list[Candidate]:
    return [to_candidate(m) for m in matches]


def format_candidate_table(candidates: list[Candidate]) -> str:
    """Format a ranked candidate list for CLI display."""
    if not candidates:
        return "No candidates found."

    lines = []
    for rank, c in enumerate(candidates, start=1):
        lines.append(f"{'─' * 60}")
        lines.append(f"  #{rank}  {c.name}  ({c.experience_level})")
        lines.append(f"       {c.file_name}")
        if c.skills:
            skills = ", ".join(c.skills[:8])
            if len(c.skills) > 8:
                skills += f" (+{len(c.skills) - 8} more)"
            lines.append(f"       Skills: {skills}")
        if c.email:
            lines.append(f"       Contact: {c.email}")
        score = f"{c.score:.4f}"
        if c.combined_score is not None:
            score += f" (combined {c.combined_score:.4f})"
        lines.append(f"       Score: {score}")
    lines.append(f"{'─' * 60}")
    return "\n".join(lines)
