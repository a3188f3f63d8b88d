from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, TypeVar

from .hashtags import SAMPLE_TOPICS, compute_trending, filter_topics
from .models import (
    Bookmark,
    CodeSnippet,
    Comment,
    Follow,
    Job,
    JobApplication,
    JobFilters,
    JobOffer,
    Like,
    Notification,
    Post,
    Resume,
    SessionData,
    TrendingTopic,
    User,
)


T = TypeVar("T")

TRENDING_POSTS_LIMIT = 10
LATEST_POSTS_LIMIT = 10
SUGGESTED_USERS_LIMIT = 5


class Storage(ABC):
    """Data-access interface shared by the in-memory and MongoDB backends."""

    # User operations
    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    async def create_user(self, user: User) -> User: ...

    @abstractmethod
    async def update_user(self, user_id: str, data: dict) -> Optional[User]: ...

    @abstractmethod
    async def search_users(self, term: str) -> List[User]: ...

    @abstractmethod
    async def get_suggested_users(self, user_id: str, limit: int = SUGGESTED_USERS_LIMIT) -> List[User]: ...

    # Session operations
    @abstractmethod
    async def create_session(self, session: SessionData) -> SessionData: ...

    @abstractmethod
    async def get_session(self, token: str) -> Optional[SessionData]: ...

    @abstractmethod
    async def delete_session(self, token: str) -> None: ...

    @abstractmethod
    async def delete_user_sessions(self, user_id: str) -> None: ...

    # Follow operations
    @abstractmethod
    async def follow_user(self, follower_id: str, following_id: str) -> bool: ...

    @abstractmethod
    async def unfollow_user(self, follower_id: str, following_id: str) -> bool: ...

    @abstractmethod
    async def is_following(self, follower_id: str, following_id: str) -> bool: ...

    @abstractmethod
    async def get_followers_count(self, user_id: str) -> int: ...

    @abstractmethod
    async def get_following_count(self, user_id: str) -> int: ...

    # Post operations
    @abstractmethod
    async def create_post(self, post: Post) -> Post: ...

    @abstractmethod
    async def get_post(self, post_id: str) -> Optional[Post]: ...

    @abstractmethod
    async def delete_post(self, post_id: str) -> None: ...

    @abstractmethod
    async def get_all_posts(self, limit: Optional[int] = None, offset: int = 0) -> List[Post]: ...

    @abstractmethod
    async def get_trending_posts(self, limit: int = TRENDING_POSTS_LIMIT) -> List[Post]: ...

    @abstractmethod
    async def get_latest_posts(self, limit: int = LATEST_POSTS_LIMIT) -> List[Post]: ...

    @abstractmethod
    async def search_posts(self, term: str) -> List[Post]: ...

    @abstractmethod
    async def get_user_posts(self, user_id: str) -> List[Post]: ...

    @abstractmethod
    async def get_user_posts_count(self, user_id: str) -> int: ...

    @abstractmethod
    async def get_user_liked_posts(self, user_id: str) -> List[Post]: ...

    @abstractmethod
    async def get_user_bookmarked_posts(self, user_id: str) -> List[Post]: ...

    # Like operations
    @abstractmethod
    async def like_post(self, post_id: str, user_id: str) -> bool: ...

    @abstractmethod
    async def unlike_post(self, post_id: str, user_id: str) -> bool: ...

    @abstractmethod
    async def is_post_liked_by_user(self, post_id: str, user_id: str) -> bool: ...

    # Bookmark operations
    @abstractmethod
    async def bookmark_post(self, post_id: str, user_id: str) -> bool: ...

    @abstractmethod
    async def unbookmark_post(self, post_id: str, user_id: str) -> bool: ...

    @abstractmethod
    async def is_post_bookmarked_by_user(self, post_id: str, user_id: str) -> bool: ...

    # Comment operations
    @abstractmethod
    async def create_comment(self, comment: Comment) -> Comment: ...

    @abstractmethod
    async def get_comments(self, post_id: str, limit: int = 50, offset: int = 0) -> List[Comment]: ...

    # Code snippet operations
    @abstractmethod
    async def get_user_code_snippets(self, user_id: str) -> List[CodeSnippet]: ...

    @abstractmethod
    async def get_public_code_snippets(self) -> List[CodeSnippet]: ...

    @abstractmethod
    async def get_code_snippet(self, snippet_id: str) -> Optional[CodeSnippet]: ...

    @abstractmethod
    async def create_code_snippet(self, snippet: CodeSnippet) -> CodeSnippet: ...

    @abstractmethod
    async def update_code_snippet(self, snippet_id: str, data: dict) -> CodeSnippet: ...

    @abstractmethod
    async def delete_code_snippet(self, snippet_id: str) -> None: ...

    # Job operations
    @abstractmethod
    async def create_job(self, job: Job) -> Job: ...

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[Job]: ...

    @abstractmethod
    async def update_job(self, job_id: str, data: dict) -> Optional[Job]: ...

    @abstractmethod
    async def delete_job(self, job_id: str) -> None: ...

    @abstractmethod
    async def get_jobs(self) -> List[Job]: ...

    @abstractmethod
    async def search_jobs(self, filters: JobFilters) -> List[Job]: ...

    @abstractmethod
    async def get_user_jobs(self, user_id: str) -> List[Job]: ...

    # Resume operations
    @abstractmethod
    async def create_resume(self, resume: Resume) -> Resume: ...

    @abstractmethod
    async def get_resume(self, resume_id: str) -> Optional[Resume]: ...

    @abstractmethod
    async def update_resume(self, resume_id: str, data: dict) -> Optional[Resume]: ...

    @abstractmethod
    async def delete_resume(self, resume_id: str) -> None: ...

    @abstractmethod
    async def get_resumes(self) -> List[Resume]: ...

    @abstractmethod
    async def search_resumes(self, term: str) -> List[Resume]: ...

    @abstractmethod
    async def get_user_resumes(self, user_id: str) -> List[Resume]: ...

    # Application operations
    @abstractmethod
    async def create_application(self, application: JobApplication) -> JobApplication: ...

    @abstractmethod
    async def get_application(self, application_id: str) -> Optional[JobApplication]: ...

    @abstractmethod
    async def get_application_for(self, job_id: str, applicant_id: str) -> Optional[JobApplication]: ...

    @abstractmethod
    async def get_user_applications(self, user_id: str) -> List[JobApplication]: ...

    @abstractmethod
    async def get_job_applications(self, job_id: str) -> List[JobApplication]: ...

    @abstractmethod
    async def update_application_status(self, application_id: str, status: str) -> Optional[JobApplication]: ...

    # Offer operations
    @abstractmethod
    async def create_offer(self, offer: JobOffer) -> JobOffer: ...

    @abstractmethod
    async def get_offer(self, offer_id: str) -> Optional[JobOffer]: ...

    @abstractmethod
    async def get_offer_for(self, resume_id: str, job_id: str) -> Optional[JobOffer]: ...

    @abstractmethod
    async def get_received_offers(self, user_id: str) -> List[JobOffer]: ...

    @abstractmethod
    async def get_sent_offers(self, user_id: str) -> List[JobOffer]: ...

    @abstractmethod
    async def update_offer_status(self, offer_id: str, status: str) -> Optional[JobOffer]: ...

    # Notification operations
    @abstractmethod
    async def create_notification(self, notification: Notification) -> Notification: ...

    @abstractmethod
    async def get_notifications(self, user_id: str, limit: int = 50) -> List[Notification]: ...

    @abstractmethod
    async def get_unread_count(self, user_id: str) -> int: ...

    @abstractmethod
    async def mark_notification_read(self, notification_id: str, user_id: str) -> bool: ...

    @abstractmethod
    async def mark_all_notifications_read(self, user_id: str) -> int: ...

    async def notify(
        self,
        user_id: str,
        kind: str,
        message: str,
        from_user_id: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> Optional[Notification]:
        # Nobody is notified about their own actions
        if from_user_id is not None and from_user_id == user_id:
            return None
        notification = Notification(
            user_id=user_id,
            type=kind,
            message=message,
            from_user_id=from_user_id,
            entity_id=entity_id,
        )
        return await self.create_notification(notification)

    # Trending topics
    async def get_trending_topics(self, limit: Optional[int] = None) -> List[TrendingTopic]:
        topics = compute_trending(await self.get_all_posts())
        if not topics:
            topics = sorted(SAMPLE_TOPICS, key=lambda topic: topic.post_count, reverse=True)
        return topics[:limit] if limit is not None else topics

    async def search_hashtags(self, term: str) -> List[TrendingTopic]:
        return filter_topics(compute_trending(await self.get_all_posts()), term)

    async def close(self) -> None:
        pass


def _newest_first(items: Iterable[T]) -> List[T]:
    # Reversing first keeps later insertions ahead on equal timestamps
    return sorted(reversed(list(items)), key=lambda item: item.created_at, reverse=True)


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.lower()


def _any_contains(values: Optional[Iterable[str]], needle: str) -> bool:
    return any(needle in value.lower() for value in values or [])


def _touch(model: T, data: dict) -> T:
    return model.model_copy(update={**data, "updated_at": datetime.now(timezone.utc)})


class MemStorage(Storage):
    def __init__(self):
        self.users: Dict[str, User] = {}
        self.sessions: Dict[str, SessionData] = {}
        self.posts: Dict[str, Post] = {}
        self.likes: Dict[str, Like] = {}
        self.comments: Dict[str, Comment] = {}
        self.bookmarks: Dict[str, Bookmark] = {}
        self.follows: Dict[str, Follow] = {}
        self.code_snippets: Dict[str, CodeSnippet] = {}
        self.jobs: Dict[str, Job] = {}
        self.resumes: Dict[str, Resume] = {}
        self.applications: Dict[str, JobApplication] = {}
        self.offers: Dict[str, JobOffer] = {}
        self.notifications: Dict[str, Notification] = {}

    # User operations
    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def get_user_by_email(self, email):
        email = email.lower()
        for user in self.users.values():
            if user.email.lower() == email:
                return user
        return None

    async def get_user_by_username(self, username):
        username = username.lower()
        for user in self.users.values():
            if user.username and user.username.lower() == username:
                return user
        return None

    async def create_user(self, user):
        if not user.username and user.email:
            user = user.model_copy(update={"username": user.email_name})
        self.users[user.id] = user
        return user

    async def update_user(self, user_id, data):
        user = self.users.get(user_id)
        if user is None:
            return None
        user = _touch(user, data)
        self.users[user_id] = user
        return user

    async def search_users(self, term):
        needle = term.strip().lower()
        if not needle:
            return []
        return [
            user for user in self.users.values()
            if _contains(user.username, needle)
            or _contains(user.first_name, needle)
            or _contains(user.last_name, needle)
        ]

    async def get_suggested_users(self, user_id, limit=SUGGESTED_USERS_LIMIT):
        followed = {f.following_id for f in self.follows.values() if f.follower_id == user_id}
        candidates = [
            user for user in _newest_first(self.users.values())
            if user.id != user_id and user.id not in followed
        ]
        followers = {user.id: await self.get_followers_count(user.id) for user in candidates}
        candidates.sort(key=lambda user: followers[user.id], reverse=True)
        return candidates[:limit]

    # Session operations
    async def create_session(self, session):
        self.sessions[session.session_token] = session
        return session

    async def get_session(self, token):
        return self.sessions.get(token)

    async def delete_session(self, token):
        self.sessions.pop(token, None)

    async def delete_user_sessions(self, user_id):
        for token in [t for t, s in self.sessions.items() if s.user_id == user_id]:
            del self.sessions[token]

    # Follow operations
    def _find_follow(self, follower_id, following_id):
        for follow in self.follows.values():
            if follow.follower_id == follower_id and follow.following_id == following_id:
                return follow
        return None

    async def follow_user(self, follower_id, following_id):
        if self._find_follow(follower_id, following_id):
            return False
        follow = Follow(follower_id=follower_id, following_id=following_id)
        self.follows[follow.id] = follow
        return True

    async def unfollow_user(self, follower_id, following_id):
        follow = self._find_follow(follower_id, following_id)
        if follow is None:
            return False
        del self.follows[follow.id]
        return True

    async def is_following(self, follower_id, following_id):
        return self._find_follow(follower_id, following_id) is not None

    async def get_followers_count(self, user_id):
        return sum(1 for f in self.follows.values() if f.following_id == user_id)

    async def get_following_count(self, user_id):
        return sum(1 for f in self.follows.values() if f.follower_id == user_id)

    # Post operations
    async def create_post(self, post):
        self.posts[post.id] = post
        return post

    async def get_post(self, post_id):
        return self.posts.get(post_id)

    async def delete_post(self, post_id):
        self.posts.pop(post_id, None)
        for table in (self.likes, self.bookmarks, self.comments):
            for key in [k for k, v in table.items() if v.post_id == post_id]:
                del table[key]

    async def get_all_posts(self, limit=None, offset=0):
        posts = _newest_first(self.posts.values())[offset:]
        return posts[:limit] if limit is not None else posts

    async def get_trending_posts(self, limit=TRENDING_POSTS_LIMIT):
        posts = _newest_first(self.posts.values())
        posts.sort(key=lambda post: post.likes_count, reverse=True)
        return posts[:limit]

    async def get_latest_posts(self, limit=LATEST_POSTS_LIMIT):
        return _newest_first(self.posts.values())[:limit]

    async def search_posts(self, term):
        needle = term.lower()
        return [
            post for post in _newest_first(self.posts.values())
            if needle in post.content.lower()
            or _any_contains(post.tags, needle)
            or _contains(post.code_snippet, needle)
        ]

    async def get_user_posts(self, user_id):
        return [post for post in _newest_first(self.posts.values()) if post.user_id == user_id]

    async def get_user_posts_count(self, user_id):
        return sum(1 for post in self.posts.values() if post.user_id == user_id)

    async def get_user_liked_posts(self, user_id):
        liked = {like.post_id for like in self.likes.values() if like.user_id == user_id}
        return [post for post in _newest_first(self.posts.values()) if post.id in liked]

    async def get_user_bookmarked_posts(self, user_id):
        saved = {b.post_id for b in self.bookmarks.values() if b.user_id == user_id}
        return [post for post in _newest_first(self.posts.values()) if post.id in saved]

    def _adjust_post(self, post_id, field, delta):
        post = self.posts.get(post_id)
        if post is not None:
            value = max(getattr(post, field) + delta, 0)
            self.posts[post_id] = post.model_copy(update={field: value})

    # Like operations
    def _find_like(self, post_id, user_id):
        for like in self.likes.values():
            if like.post_id == post_id and like.user_id == user_id:
                return like
        return None

    async def like_post(self, post_id, user_id):
        if self._find_like(post_id, user_id):
            return False
        like = Like(post_id=post_id, user_id=user_id)
        self.likes[like.id] = like
        self._adjust_post(post_id, "likes_count", 1)
        return True

    async def unlike_post(self, post_id, user_id):
        like = self._find_like(post_id, user_id)
        if like is None:
            return False
        del self.likes[like.id]
        self._adjust_post(post_id, "likes_count", -1)
        return True

    async def is_post_liked_by_user(self, post_id, user_id):
        return self._find_like(post_id, user_id) is not None

    # Bookmark operations
    def _find_bookmark(self, post_id, user_id):
        for bookmark in self.bookmarks.values():
            if bookmark.post_id == post_id and bookmark.user_id == user_id:
                return bookmark
        return None

    async def bookmark_post(self, post_id, user_id):
        if self._find_bookmark(post_id, user_id):
            return False
        bookmark = Bookmark(post_id=post_id, user_id=user_id)
        self.bookmarks[bookmark.id] = bookmark
        return True

    async def unbookmark_post(self, post_id, user_id):
        bookmark = self._find_bookmark(post_id, user_id)
        if bookmark is None:
            return False
        del self.bookmarks[bookmark.id]
        return True

    async def is_post_bookmarked_by_user(self, post_id, user_id):
        return self._find_bookmark(post_id, user_id) is not None

    # Comment operations
    async def create_comment(self, comment):
        self.comments[comment.id] = comment
        self._adjust_post(comment.post_id, "comments_count", 1)
        return comment

    async def get_comments(self, post_id, limit=50, offset=0):
        comments = [c for c in _newest_first(self.comments.values()) if c.post_id == post_id]
        return comments[offset:offset + limit]

    # Code snippet operations
    async def get_user_code_snippets(self, user_id):
        return [s for s in _newest_first(self.code_snippets.values()) if s.user_id == user_id]

    async def get_public_code_snippets(self):
        return [s for s in _newest_first(self.code_snippets.values()) if s.is_public]

    async def get_code_snippet(self, snippet_id):
        return self.code_snippets.get(snippet_id)

    async def create_code_snippet(self, snippet):
        self.code_snippets[snippet.id] = snippet
        return snippet

    async def update_code_snippet(self, snippet_id, data):
        snippet = self.code_snippets.get(snippet_id)
        if snippet is None:
            raise KeyError(f"Snippet not found: {snippet_id}")
        snippet = _touch(snippet, data)
        self.code_snippets[snippet_id] = snippet
        return snippet

    async def delete_code_snippet(self, snippet_id):
        self.code_snippets.pop(snippet_id, None)

    # Job operations
    async def create_job(self, job):
        self.jobs[job.id] = job
        return job

    async def get_job(self, job_id):
        return self.jobs.get(job_id)

    async def update_job(self, job_id, data):
        job = self.jobs.get(job_id)
        if job is None:
            return None
        job = _touch(job, data)
        self.jobs[job_id] = job
        return job

    async def delete_job(self, job_id):
        self.jobs.pop(job_id, None)
        for table in (self.applications, self.offers):
            for key in [k for k, v in table.items() if v.job_id == job_id]:
                del table[key]

    async def get_jobs(self):
        return _newest_first(self.jobs.values())

    async def search_jobs(self, filters):
        term = (filters.term or "").strip().lower()
        location = (filters.location or "").strip().lower()
        result = []
        for job in _newest_first(self.jobs.values()):
            if term and not (
                term in job.title.lower()
                or term in job.company.lower()
                or term in job.description.lower()
                or _any_contains(job.technologies, term)
            ):
                continue
            if location and not _contains(job.location, location):
                continue
            if filters.experience_level and job.experience_level != filters.experience_level:
                continue
            if filters.employment_type and job.employment_type != filters.employment_type:
                continue
            if filters.is_remote is not None and job.is_remote != filters.is_remote:
                continue
            result.append(job)
        return result

    async def get_user_jobs(self, user_id):
        return [job for job in _newest_first(self.jobs.values()) if job.user_id == user_id]

    # Resume operations
    async def create_resume(self, resume):
        self.resumes[resume.id] = resume
        return resume

    async def get_resume(self, resume_id):
        return self.resumes.get(resume_id)

    async def update_resume(self, resume_id, data):
        resume = self.resumes.get(resume_id)
        if resume is None:
            return None
        resume = _touch(resume, data)
        self.resumes[resume_id] = resume
        return resume

    async def delete_resume(self, resume_id):
        self.resumes.pop(resume_id, None)
        for table in (self.applications, self.offers):
            for key in [k for k, v in table.items() if v.resume_id == resume_id]:
                del table[key]

    async def get_resumes(self):
        return [r for r in _newest_first(self.resumes.values()) if r.is_visible]

    async def search_resumes(self, term):
        needle = term.strip().lower()
        return [
            resume for resume in await self.get_resumes()
            if not needle
            or needle in resume.title.lower()
            or _contains(resume.summary, needle)
            or _any_contains(resume.skills, needle)
            or _contains(resume.location, needle)
        ]

    async def get_user_resumes(self, user_id):
        return [r for r in _newest_first(self.resumes.values()) if r.user_id == user_id]

    # Application operations
    async def create_application(self, application):
        self.applications[application.id] = application
        return application

    async def get_application(self, application_id):
        return self.applications.get(application_id)

    async def get_application_for(self, job_id, applicant_id):
        for application in self.applications.values():
            if application.job_id == job_id and application.applicant_id == applicant_id:
                return application
        return None

    async def get_user_applications(self, user_id):
        return [a for a in _newest_first(self.applications.values()) if a.applicant_id == user_id]

    async def get_job_applications(self, job_id):
        return [a for a in _newest_first(self.applications.values()) if a.job_id == job_id]

    async def update_application_status(self, application_id, status):
        application = self.applications.get(application_id)
        if application is None:
            return None
        application = _touch(application, {"status": status})
        self.applications[application_id] = application
        return application

    # Offer operations
    async def create_offer(self, offer):
        self.offers[offer.id] = offer
        return offer

    async def get_offer(self, offer_id):
        return self.offers.get(offer_id)

    async def get_offer_for(self, resume_id, job_id):
        for offer in self.offers.values():
            if offer.resume_id == resume_id and offer.job_id == job_id:
                return offer
        return None

    async def get_received_offers(self, user_id):
        return [o for o in _newest_first(self.offers.values()) if o.candidate_id == user_id]

    async def get_sent_offers(self, user_id):
        return [o for o in _newest_first(self.offers.values()) if o.employer_id == user_id]

    async def update_offer_status(self, offer_id, status):
        offer = self.offers.get(offer_id)
        if offer is None:
            return None
        offer = _touch(offer, {"status": status})
        self.offers[offer_id] = offer
        return offer

    # Notification operations
    async def create_notification(self, notification):
        self.notifications[notification.id] = notification
        return notification

    async def get_notifications(self, user_id, limit=50):
        items = [n for n in _newest_first(self.notifications.values()) if n.user_id == user_id]
        return items[:limit]

    async def get_unread_count(self, user_id):
        return sum(1 for n in self.notifications.values() if n.user_id == user_id and not n.is_read)

    async def mark_notification_read(self, notification_id, user_id):
        notification = self.notifications.get(notification_id)
        if notification is None or notification.user_id != user_id:
            return False
        self.notifications[notification_id] = notification.model_copy(update={"is_read": True})
        return True

    async def mark_all_notifications_read(self, user_id):
        updated = 0
        for key, notification in list(self.notifications.items()):
            if notification.user_id == user_id and not notification.is_read:
                self.notifications[key] = notification.model_copy(update={"is_read": True})
                updated += 1
        return updated
