import logging
import re
from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorClient

from .models import (
    Bookmark,
    CodeSnippet,
    Comment,
    Follow,
    Job,
    JobApplication,
    JobOffer,
    Like,
    Notification,
    Post,
    Resume,
    SessionData,
    User,
)
from .storage import LATEST_POSTS_LIMIT, SUGGESTED_USERS_LIMIT, TRENDING_POSTS_LIMIT, Storage

logger = logging.getLogger(__name__)

NEWEST = [("created_at", -1)]
OLDEST = [("created_at", 1)]


def _like(term: str) -> dict:
    return {"$regex": re.escape(term), "$options": "i"}


def _exact(value: str) -> dict:
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


class MongoStorage(Storage):
    def __init__(self, mongo_url: Optional[str] = None, db_name: str = "devstream", client=None):
        self.client = client if client is not None else AsyncIOMotorClient(mongo_url, tz_aware=True)
        self.db = self.client[db_name]
        logger.info("Using MongoDB storage (database %s)", db_name)

    async def close(self):
        self.client.close()

    @staticmethod
    async def _fetch(cursor, model, limit: Optional[int] = None):
        docs = await cursor.to_list(length=limit)
        return [model(**doc) for doc in docs]

    async def _find_one(self, collection, query, model):
        doc = await self.db[collection].find_one(query)
        return model(**doc) if doc else None

    async def _update(self, collection, item_id, data, model):
        update = {**data, "updated_at": datetime.now(timezone.utc)}
        await self.db[collection].update_one({"id": item_id}, {"$set": update})
        return await self._find_one(collection, {"id": item_id}, model)

    # User operations
    async def get_user(self, user_id):
        return await self._find_one("users", {"id": user_id}, User)

    async def get_user_by_email(self, email):
        return await self._find_one("users", {"email": _exact(email)}, User)

    async def get_user_by_username(self, username):
        return await self._find_one("users", {"username": _exact(username)}, User)

    async def create_user(self, user):
        if not user.username and user.email:
            user = user.model_copy(update={"username": user.email_name})
        await self.db.users.insert_one(user.model_dump())
        return user

    async def update_user(self, user_id, data):
        return await self._update("users", user_id, data, User)

    async def search_users(self, term):
        term = term.strip()
        if not term:
            return []
        query = {"$or": [
            {"username": _like(term)},
            {"first_name": _like(term)},
            {"last_name": _like(term)},
        ]}
        return await self._fetch(self.db.users.find(query).sort(OLDEST), User)

    async def get_suggested_users(self, user_id, limit=SUGGESTED_USERS_LIMIT):
        followed = await self.db.follows.distinct("following_id", {"follower_id": user_id})
        pipeline = [
            {"$match": {"id": {"$nin": followed + [user_id]}}},
            {
                "$lookup": {
                    "from": "follows",
                    "localField": "id",
                    "foreignField": "following_id",
                    "as": "followers"
                }
            },
            {"$addFields": {"followers_count": {"$size": "$followers"}}},
            {"$sort": {"followers_count": -1, "created_at": -1}},
            {"$limit": limit},
            {"$project": {"followers": 0}}
        ]
        return await self._fetch(self.db.users.aggregate(pipeline), User)

    # Session operations
    async def create_session(self, session):
        await self.db.sessions.insert_one(session.model_dump())
        return session

    async def get_session(self, token):
        return await self._find_one("sessions", {"session_token": token}, SessionData)

    async def delete_session(self, token):
        await self.db.sessions.delete_one({"session_token": token})

    async def delete_user_sessions(self, user_id):
        await self.db.sessions.delete_many({"user_id": user_id})

    # Follow operations
    async def follow_user(self, follower_id, following_id):
        if await self.is_following(follower_id, following_id):
            return False
        follow = Follow(follower_id=follower_id, following_id=following_id)
        await self.db.follows.insert_one(follow.model_dump())
        return True

    async def unfollow_user(self, follower_id, following_id):
        result = await self.db.follows.delete_one({
            "follower_id": follower_id,
            "following_id": following_id
        })
        return result.deleted_count > 0

    async def is_following(self, follower_id, following_id):
        follow = await self.db.follows.find_one({
            "follower_id": follower_id,
            "following_id": following_id
        })
        return bool(follow)

    async def get_followers_count(self, user_id):
        return await self.db.follows.count_documents({"following_id": user_id})

    async def get_following_count(self, user_id):
        return await self.db.follows.count_documents({"follower_id": user_id})

    # Post operations
    async def create_post(self, post):
        await self.db.posts.insert_one(post.model_dump())
        return post

    async def get_post(self, post_id):
        return await self._find_one("posts", {"id": post_id}, Post)

    async def delete_post(self, post_id):
        await self.db.posts.delete_one({"id": post_id})
        await self.db.likes.delete_many({"post_id": post_id})
        await self.db.bookmarks.delete_many({"post_id": post_id})
        await self.db.comments.delete_many({"post_id": post_id})

    async def get_all_posts(self, limit=None, offset=0):
        cursor = self.db.posts.find().sort(NEWEST).skip(offset)
        if limit is not None:
            cursor = cursor.limit(limit)
        return await self._fetch(cursor, Post)

    async def get_trending_posts(self, limit=TRENDING_POSTS_LIMIT):
        cursor = self.db.posts.find().sort([("likes_count", -1), ("created_at", -1)]).limit(limit)
        return await self._fetch(cursor, Post)

    async def get_latest_posts(self, limit=LATEST_POSTS_LIMIT):
        return await self._fetch(self.db.posts.find().sort(NEWEST).limit(limit), Post)

    async def search_posts(self, term):
        query = {"$or": [
            {"content": _like(term)},
            {"tags": _like(term)},
            {"code_snippet": _like(term)},
        ]}
        return await self._fetch(self.db.posts.find(query).sort(NEWEST), Post)

    async def get_user_posts(self, user_id):
        return await self._fetch(self.db.posts.find({"user_id": user_id}).sort(NEWEST), Post)

    async def get_user_posts_count(self, user_id):
        return await self.db.posts.count_documents({"user_id": user_id})

    async def _posts_by_link(self, collection, user_id):
        post_ids = await self.db[collection].distinct("post_id", {"user_id": user_id})
        cursor = self.db.posts.find({"id": {"$in": post_ids}}).sort(NEWEST)
        return await self._fetch(cursor, Post)

    async def get_user_liked_posts(self, user_id):
        return await self._posts_by_link("likes", user_id)

    async def get_user_bookmarked_posts(self, user_id):
        return await self._posts_by_link("bookmarks", user_id)

    # Like operations
    async def like_post(self, post_id, user_id):
        if await self.is_post_liked_by_user(post_id, user_id):
            return False
        like = Like(post_id=post_id, user_id=user_id)
        await self.db.likes.insert_one(like.model_dump())
        await self.db.posts.update_one({"id": post_id}, {"$inc": {"likes_count": 1}})
        return True

    async def unlike_post(self, post_id, user_id):
        result = await self.db.likes.delete_one({"post_id": post_id, "user_id": user_id})
        if not result.deleted_count:
            return False
        await self.db.posts.update_one(
            {"id": post_id, "likes_count": {"$gt": 0}},
            {"$inc": {"likes_count": -1}}
        )
        return True

    async def is_post_liked_by_user(self, post_id, user_id):
        like = await self.db.likes.find_one({"post_id": post_id, "user_id": user_id})
        return bool(like)

    # Bookmark operations
    async def bookmark_post(self, post_id, user_id):
        if await self.is_post_bookmarked_by_user(post_id, user_id):
            return False
        bookmark = Bookmark(post_id=post_id, user_id=user_id)
        await self.db.bookmarks.insert_one(bookmark.model_dump())
        return True

    async def unbookmark_post(self, post_id, user_id):
        result = await self.db.bookmarks.delete_one({"post_id": post_id, "user_id": user_id})
        return result.deleted_count > 0

    async def is_post_bookmarked_by_user(self, post_id, user_id):
        bookmark = await self.db.bookmarks.find_one({"post_id": post_id, "user_id": user_id})
        return bool(bookmark)

    # Comment operations
    async def create_comment(self, comment):
        await self.db.comments.insert_one(comment.model_dump())
        await self.db.posts.update_one(
            {"id": comment.post_id},
            {"$inc": {"comments_count": 1}}
        )
        return comment

    async def get_comments(self, post_id, limit=50, offset=0):
        cursor = self.db.comments.find({"post_id": post_id}).sort(NEWEST).skip(offset).limit(limit)
        return await self._fetch(cursor, Comment)

    # Code snippet operations
    async def get_user_code_snippets(self, user_id):
        cursor = self.db.code_snippets.find({"user_id": user_id}).sort(NEWEST)
        return await self._fetch(cursor, CodeSnippet)

    async def get_public_code_snippets(self):
        cursor = self.db.code_snippets.find({"is_public": True}).sort(NEWEST)
        return await self._fetch(cursor, CodeSnippet)

    async def get_code_snippet(self, snippet_id):
        return await self._find_one("code_snippets", {"id": snippet_id}, CodeSnippet)

    async def create_code_snippet(self, snippet):
        await self.db.code_snippets.insert_one(snippet.model_dump())
        return snippet

    async def update_code_snippet(self, snippet_id, data):
        snippet = await self._update("code_snippets", snippet_id, data, CodeSnippet)
        if snippet is None:
            raise KeyError(f"Snippet not found: {snippet_id}")
        return snippet

    async def delete_code_snippet(self, snippet_id):
        await self.db.code_snippets.delete_one({"id": snippet_id})

    # Job operations
    async def create_job(self, job):
        await self.db.jobs.insert_one(job.model_dump())
        return job

    async def get_job(self, job_id):
        return await self._find_one("jobs", {"id": job_id}, Job)

    async def update_job(self, job_id, data):
        return await self._update("jobs", job_id, data, Job)

    async def delete_job(self, job_id):
        await self.db.jobs.delete_one({"id": job_id})
        await self.db.applications.delete_many({"job_id": job_id})
        await self.db.offers.delete_many({"job_id": job_id})

    async def get_jobs(self):
        return await self._fetch(self.db.jobs.find().sort(NEWEST), Job)

    async def search_jobs(self, filters):
        query = {}
        term = (filters.term or "").strip()
        if term:
            query["$or"] = [
                {"title": _like(term)},
                {"company": _like(term)},
                {"description": _like(term)},
                {"technologies": _like(term)},
            ]
        if filters.location:
            query["location"] = _like(filters.location.strip())
        if filters.experience_level:
            query["experience_level"] = filters.experience_level
        if filters.employment_type:
            query["employment_type"] = filters.employment_type
        if filters.is_remote is not None:
            query["is_remote"] = filters.is_remote
        return await self._fetch(self.db.jobs.find(query).sort(NEWEST), Job)

    async def get_user_jobs(self, user_id):
        return await self._fetch(self.db.jobs.find({"user_id": user_id}).sort(NEWEST), Job)

    # Resume operations
    async def create_resume(self, resume):
        await self.db.resumes.insert_one(resume.model_dump())
        return resume

    async def get_resume(self, resume_id):
        return await self._find_one("resumes", {"id": resume_id}, Resume)

    async def update_resume(self, resume_id, data):
        return await self._update("resumes", resume_id, data, Resume)

    async def delete_resume(self, resume_id):
        await self.db.resumes.delete_one({"id": resume_id})
        await self.db.applications.delete_many({"resume_id": resume_id})
        await self.db.offers.delete_many({"resume_id": resume_id})

    async def get_resumes(self):
        return await self._fetch(self.db.resumes.find({"is_visible": True}).sort(NEWEST), Resume)

    async def search_resumes(self, term):
        query = {"is_visible": True}
        term = term.strip()
        if term:
            query["$or"] = [
                {"title": _like(term)},
                {"summary": _like(term)},
                {"skills": _like(term)},
                {"location": _like(term)},
            ]
        return await self._fetch(self.db.resumes.find(query).sort(NEWEST), Resume)

    async def get_user_resumes(self, user_id):
        return await self._fetch(self.db.resumes.find({"user_id": user_id}).sort(NEWEST), Resume)

    # Application operations
    async def create_application(self, application):
        await self.db.applications.insert_one(application.model_dump())
        return application

    async def get_application(self, application_id):
        return await self._find_one("applications", {"id": application_id}, JobApplication)

    async def get_application_for(self, job_id, applicant_id):
        query = {"job_id": job_id, "applicant_id": applicant_id}
        return await self._find_one("applications", query, JobApplication)

    async def get_user_applications(self, user_id):
        cursor = self.db.applications.find({"applicant_id": user_id}).sort(NEWEST)
        return await self._fetch(cursor, JobApplication)

    async def get_job_applications(self, job_id):
        cursor = self.db.applications.find({"job_id": job_id}).sort(NEWEST)
        return await self._fetch(cursor, JobApplication)

    async def update_application_status(self, application_id, status):
        return await self._update("applications", application_id, {"status": status}, JobApplication)

    # Offer operations
    async def create_offer(self, offer):
        await self.db.offers.insert_one(offer.model_dump())
        return offer

    async def get_offer(self, offer_id):
        return await self._find_one("offers", {"id": offer_id}, JobOffer)

    async def get_offer_for(self, resume_id, job_id):
        return await self._find_one("offers", {"resume_id": resume_id, "job_id": job_id}, JobOffer)

    async def get_received_offers(self, user_id):
        cursor = self.db.offers.find({"candidate_id": user_id}).sort(NEWEST)
        return await self._fetch(cursor, JobOffer)

    async def get_sent_offers(self, user_id):
        cursor = self.db.offers.find({"employer_id": user_id}).sort(NEWEST)
        return await self._fetch(cursor, JobOffer)

    async def update_offer_status(self, offer_id, status):
        return await self._update("offers", offer_id, {"status": status}, JobOffer)

    # Notification operations
    async def create_notification(self, notification):
        await self.db.notifications.insert_one(notification.model_dump())
        return notification

    async def get_notifications(self, user_id, limit=50):
        cursor = self.db.notifications.find({"user_id": user_id}).sort(NEWEST).limit(limit)
        return await self._fetch(cursor, Notification)

    async def get_unread_count(self, user_id):
        return await self.db.notifications.count_documents({"user_id": user_id, "is_read": False})

    async def mark_notification_read(self, notification_id, user_id):
        result = await self.db.notifications.update_one(
            {"id": notification_id, "user_id": user_id},
            {"$set": {"is_read": True}}
        )
        return result.matched_count > 0

    async def mark_all_notifications_read(self, user_id):
        result = await self.db.notifications.update_many(
            {"user_id": user_id, "is_read": False},
            {"$set": {"is_read": True}}
        )
        return result.modified_count
