import uuid
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, StringConstraints


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


Language = Literal["en", "ru"]
# Content that is not empty once surrounding whitespace is stripped
Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
NotificationType = Literal["like", "comment", "mention", "follow", "application", "offer"]
ApplicationStatus = Literal["pending", "accepted", "rejected"]
OfferStatus = Literal["pending", "accepted", "declined"]


# Users
class User(BaseModel):
    id: str = Field(default_factory=_new_id)
    email: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    password_hash: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github: Optional[str] = None
    twitter: Optional[str] = None
    language: Language = "en"
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def email_name(self) -> Optional[str]:
        return self.email.split('@')[0] if self.email else None

    @property
    def display_username(self) -> str:
        return self.username or self.email_name or 'user'

    @property
    def display_name(self) -> str:
        return self.first_name or self.email_name or 'User'


class UserPublic(BaseModel):
    """A user as returned to API clients; never carries the password hash."""
    id: str
    email: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str
    profile_image_url: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github: Optional[str] = None
    twitter: Optional[str] = None
    language: Language = "en"
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        data = user.model_dump(exclude={"password_hash", "username"})
        return cls(username=user.display_username, display_name=user.display_name, **data)


class Author(BaseModel):
    id: str
    username: str
    display_name: str
    profile_image_url: Optional[str] = None

    @classmethod
    def from_user(cls, user: Optional[User], user_id: str = "") -> "Author":
        if user is None:
            return cls(id=user_id, username='user', display_name='User')
        return cls(
            id=user.id,
            username=user.display_username,
            display_name=user.display_name,
            profile_image_url=user.profile_image_url,
        )


class UserSummary(Author):
    bio: Optional[str] = None
    followers_count: int = 0


class UserProfile(BaseModel):
    id: str
    email: str
    username: str
    display_name: str
    profile_image_url: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github: Optional[str] = None
    twitter: Optional[str] = None
    joined_at: datetime
    posts_count: int
    followers_count: int
    following_count: int


class UserStats(BaseModel):
    posts_count: int
    followers_count: int
    following_count: int


class UserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github: Optional[str] = None
    twitter: Optional[str] = None


class RegisterRequest(BaseModel):
    email: EmailStr
    username: Optional[str] = Field(None, min_length=3, max_length=32, pattern=r"^[A-Za-z0-9_.-]+$")
    password: str = Field(min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class LanguageUpdate(BaseModel):
    language: Language


class SessionData(BaseModel):
    session_token: str
    user_id: str
    expires_at: datetime


class AuthResponse(BaseModel):
    user: UserPublic
    session_token: str


class Follow(BaseModel):
    id: str = Field(default_factory=_new_id)
    follower_id: str
    following_id: str
    created_at: datetime = Field(default_factory=_now)


class FollowRequest(BaseModel):
    followed: Optional[bool] = None


# Posts
class Post(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    content: str
    code_snippet: Optional[str] = None
    language: Optional[str] = None
    image: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_ai_recommended: bool = False
    ai_recommendation_reason: Optional[str] = None
    likes_count: int = 0
    comments_count: int = 0
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class PostCreate(BaseModel):
    content: Text
    code_snippet: Optional[str] = None
    language: Optional[str] = None
    image: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class PostWithUser(Post):
    user: Author
    is_liked: bool = False
    is_bookmarked: bool = False


class Like(BaseModel):
    id: str = Field(default_factory=_new_id)
    post_id: str
    user_id: str
    created_at: datetime = Field(default_factory=_now)


class Bookmark(BaseModel):
    id: str = Field(default_factory=_new_id)
    post_id: str
    user_id: str
    created_at: datetime = Field(default_factory=_now)


class LikeRequest(BaseModel):
    liked: Optional[bool] = None


class BookmarkRequest(BaseModel):
    bookmarked: Optional[bool] = None


class Comment(BaseModel):
    id: str = Field(default_factory=_new_id)
    post_id: str
    user_id: str
    content: str
    created_at: datetime = Field(default_factory=_now)


class CommentCreate(BaseModel):
    content: Text


class CommentWithUser(Comment):
    user: Author


# Code snippets
class CodeSnippet(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    title: str
    description: Optional[str] = None
    code: str
    language: str
    tags: List[str] = Field(default_factory=list)
    is_public: bool = True
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class CodeSnippetCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    code: str = Field(min_length=1)
    language: str = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)
    is_public: bool = True


class TrendingTopic(BaseModel):
    id: str
    category: str
    name: str
    post_count: int = 0
    score: float = 0.0


# Work: jobs and resumes
class JobCreate(BaseModel):
    title: str = Field(min_length=1)
    company: str = Field(min_length=1)
    description: str = Field(min_length=1)
    requirements: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    employment_type: Optional[str] = None
    experience_level: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    is_remote: bool = False
    contact_email: Optional[str] = None
    external_link: Optional[str] = None


class JobUpdate(BaseModel):
    title: Optional[str] = None
    company: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    employment_type: Optional[str] = None
    experience_level: Optional[str] = None
    technologies: Optional[List[str]] = None
    is_remote: Optional[bool] = None
    contact_email: Optional[str] = None
    external_link: Optional[str] = None


class Job(JobCreate):
    id: str = Field(default_factory=_new_id)
    user_id: str
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class JobWithPoster(Job):
    poster: Author


class JobFilters(BaseModel):
    term: Optional[str] = None
    location: Optional[str] = None
    experience_level: Optional[str] = None
    employment_type: Optional[str] = None
    is_remote: Optional[bool] = None


class ResumeCreate(BaseModel):
    title: str = Field(min_length=1)
    summary: Optional[str] = None
    experience: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    education: Optional[str] = None
    location: Optional[str] = None
    expected_salary: Optional[str] = None
    preferred_employment_type: Optional[str] = None
    is_remote_preferred: bool = False
    portfolio_link: Optional[str] = None
    github_link: Optional[str] = None
    linkedin_link: Optional[str] = None
    is_visible: bool = True


class ResumeUpdate(BaseModel):
    title: Optional[str] = None
    summary: Optional[str] = None
    experience: Optional[str] = None
    skills: Optional[List[str]] = None
    education: Optional[str] = None
    location: Optional[str] = None
    expected_salary: Optional[str] = None
    preferred_employment_type: Optional[str] = None
    is_remote_preferred: Optional[bool] = None
    portfolio_link: Optional[str] = None
    github_link: Optional[str] = None
    linkedin_link: Optional[str] = None
    is_visible: Optional[bool] = None


class Resume(ResumeCreate):
    id: str = Field(default_factory=_new_id)
    user_id: str
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class ResumeWithUser(Resume):
    user: Author


class ApplicationCreate(BaseModel):
    resume_id: str = Field(min_length=1)
    cover_letter: str = Field(min_length=10)


class JobApplication(BaseModel):
    id: str = Field(default_factory=_new_id)
    job_id: str
    resume_id: str
    applicant_id: str
    cover_letter: str
    status: ApplicationStatus = "pending"
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class ApplicationStatusUpdate(BaseModel):
    status: Literal["accepted", "rejected"]


class ApplicationCheck(BaseModel):
    has_applied: bool
    application: Optional[JobApplication] = None


class OfferCreate(BaseModel):
    job_id: str = Field(min_length=1)
    message: str = Field(min_length=10)


class JobOffer(BaseModel):
    id: str = Field(default_factory=_new_id)
    job_id: str
    resume_id: str
    employer_id: str
    candidate_id: str
    message: str
    status: OfferStatus = "pending"
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class OfferResponse(BaseModel):
    status: Literal["accepted", "declined"]


# Notifications
class Notification(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    type: NotificationType
    message: str
    from_user_id: Optional[str] = None
    entity_id: Optional[str] = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=_now)


class NotificationWithUser(Notification):
    from_user: Optional[Author] = None


class NotificationCount(BaseModel):
    count: int


# AI assistant
class AiPrompt(BaseModel):
    prompt: str = ""


class AiSuggestion(BaseModel):
    suggestion: str


class AnalyzeRequest(BaseModel):
    content: str


class PostAnalysis(BaseModel):
    sentiment: Literal["positive", "neutral", "negative"]
    topics: List[str]
    suggestions: List[str]
