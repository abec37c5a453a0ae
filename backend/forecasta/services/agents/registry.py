"""Closed set of content tools. Each kind owns its schemas and prompt."""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from forecasta.services.agents import schemas as s


class ToolKind(str, Enum):
    BLOG_WRITER = "blog-writer"
    EMAIL_WRITER = "email-writer"
    REVIEW_RESPONDER = "review-responder"
    AD_COPY = "ad-copy"
    FAQ_BUILDER = "faq-builder"
    GMB_POST = "gmb-post"
    LOCAL_SEO_META = "local-seo-meta"
    LOCATION_PAGE = "location-page"
    VIDEO_SCRIPT = "video-script"
    NEWSLETTER = "newsletter"


@dataclass(frozen=True)
class Agent:
    kind: ToolKind
    input_model: type[s.ToolInput]
    output_model: type[s.ToolOutput]
    system_prompt: str
    build_message: Callable[[s.ToolInput], str]
    temperature: float = 0.7
    max_tokens: int = 2000


def _business(inp: s.ToolInput) -> str:
    text = f"Business: {inp.business_name}\nType: {inp.business_type}\n"
    if inp.website_analysis:
        text += f"Website analysis: {json.dumps(inp.website_analysis, default=str)[:2000]}\n"
    return text


def _returns(fields: dict[str, str]) -> str:
    return "Return JSON with:\n" + json.dumps(fields, indent=2)


def _blog(inp: s.BlogWriterInput) -> str:
    topic = inp.topic or f"a topic relevant to {inp.business_type} customers"
    return (
        _business(inp)
        + f"Write an SEO-optimized blog post about {topic}. 800-1200 words, markdown headings.\n"
        + _returns({"title": "...", "meta_description": "...", "content": "...", "keywords": ["..."]})
    )


def _email(inp: s.EmailWriterInput) -> str:
    to = f" to {inp.recipient}" if inp.recipient else ""
    return _business(inp) + f"Purpose: {inp.purpose}\nWrite a professional email{to}.\n" + _returns({"subject": "...", "body": "..."})


def _review(inp: s.ReviewResponderInput) -> str:
    return (
        _business(inp)
        + f"Review: {inp.review_text}\nRating: {inp.review_rating} stars\n"
        + "Respond in 50-100 words. Enthusiastic for 5 stars, empathetic for lower ratings.\n"
        + _returns({"response": "...", "tone_tips": "..."})
    )


def _ad_copy(inp: s.AdCopyInput) -> str:
    return (
        _business(inp)
        + f"Platform: {inp.ad_platform}\nGoal: {inp.ad_goal}\nWrite 3 headlines and 2 descriptions.\n"
        + _returns({"headlines": ["..."], "descriptions": ["..."], "call_to_action": "..."})
    )


def _faq(inp: s.FAQBuilderInput) -> str:
    return _business(inp) + f"Write {inp.count} frequently asked questions with answers.\n" + _returns(
        {"faqs": [{"question": "...", "answer": "..."}]}
    )


def _gmb(inp: s.GMBPostInput) -> str:
    return _business(inp) + f"Write a Google Business Profile {inp.post_type} post under 300 words.\n" + _returns(
        {"post_text": "...", "call_to_action": "...", "hashtags": ["..."]}
    )


def _seo_meta(inp: s.LocalSEOMetaInput) -> str:
    where = f" in {inp.location}" if inp.location else ""
    return _business(inp) + f"Write local SEO meta tags for the {inp.page_type} page{where}.\n" + _returns(
        {"title_tag": "...", "meta_description": "...", "h1": "..."}
    )


def _location_page(inp: s.LocationPageInput) -> str:
    return _business(inp) + f"Write a service-area landing page for {inp.location}.\n" + _returns(
        {"headline": "...", "content": "...", "meta_description": "..."}
    )


def _video(inp: s.VideoScriptInput) -> str:
    return _business(inp) + f"Write a {inp.duration_seconds}-second {inp.video_type} video script.\n" + _returns(
        {"title": "...", "hook": "...", "script": "...", "call_to_action": "..."}
    )


def _newsletter(inp: s.NewsletterInput) -> str:
    return (
        _business(inp)
        + f"Topic: {inp.newsletter_topic}\nStyle: {inp.newsletter_type}\nWrite an email newsletter.\n"
        + _returns({"subject_line": "...", "preview_text": "...", "body": "..."})
    )


AGENTS: dict[ToolKind, Agent] = {
    a.kind: a
    for a in (
        Agent(ToolKind.BLOG_WRITER, s.BlogWriterInput, s.BlogWriterOutput,
              "You are an expert SEO content writer for local businesses.", _blog, max_tokens=3000),
        Agent(ToolKind.EMAIL_WRITER, s.EmailWriterInput, s.EmailWriterOutput,
              "You write clear, professional business emails.", _email),
        Agent(ToolKind.REVIEW_RESPONDER, s.ReviewResponderInput, s.ReviewResponderOutput,
              "You write warm, professional responses to customer reviews.", _review, temperature=0.6),
        Agent(ToolKind.AD_COPY, s.AdCopyInput, s.AdCopyOutput,
              "You are a direct-response copywriter for paid ads.", _ad_copy, temperature=0.8),
        Agent(ToolKind.FAQ_BUILDER, s.FAQBuilderInput, s.FAQBuilderOutput,
              "You build helpful FAQ sections for small business websites.", _faq),
        Agent(ToolKind.GMB_POST, s.GMBPostInput, s.GMBPostOutput,
              "You write engaging Google Business Profile posts.", _gmb, max_tokens=800),
        Agent(ToolKind.LOCAL_SEO_META, s.LocalSEOMetaInput, s.LocalSEOMetaOutput,
              "You are a local SEO specialist.", _seo_meta, temperature=0.4, max_tokens=600),
        Agent(ToolKind.LOCATION_PAGE, s.LocationPageInput, s.LocationPageOutput,
              "You write location landing pages that rank in local search.", _location_page, max_tokens=2500),
        Agent(ToolKind.VIDEO_SCRIPT, s.VideoScriptInput, s.VideoScriptOutput,
              "You write short marketing video scripts.", _video),
        Agent(ToolKind.NEWSLETTER, s.NewsletterInput, s.NewsletterOutput,
              "You are an email marketing specialist.", _newsletter),
    )
}
