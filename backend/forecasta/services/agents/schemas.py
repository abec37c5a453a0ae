from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    business_name: str = Field(min_length=1)
    business_type: str = Field(min_length=1)
    website_analysis: Optional[dict[str, Any]] = None


class BlogWriterInput(ToolInput):
    topic: Optional[str] = None


class EmailWriterInput(ToolInput):
    purpose: str = "Send a professional email to customers"
    recipient: Optional[str] = None


class ReviewResponderInput(ToolInput):
    review_text: str = "Great service and friendly staff!"
    review_rating: int = Field(default=5, ge=1, le=5)


class AdCopyInput(ToolInput):
    ad_platform: str = "google"
    ad_goal: str = "leads"


class FAQBuilderInput(ToolInput):
    count: int = Field(default=8, ge=1, le=20)


class GMBPostInput(ToolInput):
    post_type: str = "update"  # update/offer/event


class LocalSEOMetaInput(ToolInput):
    page_type: str = "homepage"
    location: Optional[str] = None


class LocationPageInput(ToolInput):
    location: str = Field(min_length=1)


class VideoScriptInput(ToolInput):
    video_type: str = "explainer"
    duration_seconds: int = Field(default=60, ge=15, le=600)


class NewsletterInput(ToolInput):
    newsletter_topic: str = Field(min_length=1)
    newsletter_type: str = "educational"


# ---------------------------------------------------------------- outputs

class ToolOutput(BaseModel):
    model_config = ConfigDict(extra="allow")


class BlogWriterOutput(ToolOutput):
    title: str
    content: str
    meta_description: Optional[str] = None
    keywords: list[str] = []


class EmailWriterOutput(ToolOutput):
    subject: str
    body: str


class ReviewResponderOutput(ToolOutput):
    response: str
    tone_tips: Optional[str] = None


class AdCopyOutput(ToolOutput):
    headlines: list[str]
    descriptions: list[str]
    call_to_action: Optional[str] = None


class FAQItem(BaseModel):
    question: str
    answer: str


class FAQBuilderOutput(ToolOutput):
    faqs: list[FAQItem]


class GMBPostOutput(ToolOutput):
    post_text: str
    call_to_action: Optional[str] = None
    hashtags: list[str] = []


class LocalSEOMetaOutput(ToolOutput):
    title_tag: str
    meta_description: str
    h1: Optional[str] = None


class LocationPageOutput(ToolOutput):
    headline: str
    content: str
    meta_description: Optional[str] = None


class VideoScriptOutput(ToolOutput):
    title: str
    script: str
    hook: Optional[str] = None
    call_to_action: Optional[str] = None


class NewsletterOutput(ToolOutput):
    subject_line: str
    body: str
    preview_text: Optional[str] = None
