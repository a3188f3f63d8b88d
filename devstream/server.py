import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from . import config
from .ai import AiAssistant, analyze_post, generate_content_ideas, get_ai_recommendations
from .auth import (
    clear_session_cookie,
    get_current_user,
    get_optional_user,
    hash_password,
    seed_default_admin,
    start_session,
    verify_password,
)
from .deps import close_storage, get_assistant, get_storage
from .hashtags import post_hashtags
from .models import (
    AiPrompt,
    AiSuggestion,
    AnalyzeRequest,
    Author,
    AuthResponse,
    BookmarkRequest,
    CodeSnippet,
    CodeSnippetCreate,
    Comment,
    CommentCreate,
    CommentWithUser,
    FollowRequest,
    LanguageUpdate,
    LikeRequest,
    LoginRequest,
    NotificationCount,
    NotificationWithUser,
    Post,
    PostAnalysis,
    PostCreate,
    PostWithUser,
    RegisterRequest,
    TrendingTopic,
    User,
    UserProfile,
    UserPublic,
    UserStats,
    UserSummary,
    UserUpdate,
)
from .storage import Storage
from .work import work_router

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create the main app without a prefix
app = FastAPI(title="DevStream API")

# Create a router with the /api prefix
api_router = APIRouter(prefix="/api")


# Response helpers
async def enrich_post(storage: Storage, post: Post, viewer: Optional[User]) -> PostWithUser:
    author = await storage.get_user(post.user_id)
    is_liked = is_bookmarked = False
    if viewer is not None:
        is_liked = await storage.is_post_liked_by_user(post.id, viewer.id)
        is_bookmarked = await storage.is_post_bookmarked_by_user(post.id, viewer.id)
    return PostWithUser(
        **post.model_dump(),
        user=Author.from_user(author, post.user_id),
        is_liked=is_liked,
        is_bookmarked=is_bookmarked,
    )


async def enrich_posts(storage: Storage, posts: List[Post], viewer: Optional[User]) -> List[PostWithUser]:
    return [await enrich_post(storage, post, viewer) for post in posts]


async def require_post(storage: Storage, post_id: str) -> Post:
    post = await storage.get_post(post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


async def require_user(storage: Storage, user_id: str) -> User:
    user = await storage.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def user_stats(storage: Storage, user_id: str) -> UserStats:
    return UserStats(
        posts_count=await storage.get_user_posts_count(user_id),
        followers_count=await storage.get_followers_count(user_id),
        following_count=await storage.get_following_count(user_id),
    )


# Auth routes
@api_router.post("/auth/register", response_model=AuthResponse, status_code=201)
async def register(
    payload: RegisterRequest,
    response: Response,
    storage: Storage = Depends(get_storage)
):
    if await storage.get_user_by_email(payload.email):
        raise HTTPException(status_code=409, detail="Email is already registered")
    # Without a username the email local part is used
    username = payload.username or payload.email.split('@')[0]
    if await storage.get_user_by_username(username):
        raise HTTPException(status_code=409, detail="Username is already taken")

    user = await storage.create_user(User(
        email=payload.email,
        username=username,
        first_name=payload.first_name,
        last_name=payload.last_name,
        password_hash=hash_password(payload.password),
    ))
    token = await start_session(storage, user, response)
    return AuthResponse(user=UserPublic.from_user(user), session_token=token)


@api_router.post("/auth/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    storage: Storage = Depends(get_storage)
):
    user = await storage.get_user_by_email(payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = await start_session(storage, user, response)
    return AuthResponse(user=UserPublic.from_user(user), session_token=token)


@api_router.post("/auth/logout")
async def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    # Delete every session of the user
    await storage.delete_user_sessions(current_user.id)
    clear_session_cookie(response)
    return {"message": "Logged out successfully"}


@api_router.get("/auth/me", response_model=UserPublic)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    return UserPublic.from_user(current_user)


@api_router.post("/auth/language", response_model=UserPublic)
async def update_language(
    payload: LanguageUpdate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    user = await storage.update_user(current_user.id, {"language": payload.language})
    return UserPublic.from_user(user)


# User routes
@api_router.get("/users/search", response_model=List[UserSummary])
async def search_users(q: str = "", storage: Storage = Depends(get_storage)):
    if not q.strip():
        return []
    users = await storage.search_users(q)
    return [
        UserSummary(
            **Author.from_user(user).model_dump(),
            bio=user.bio,
            followers_count=await storage.get_followers_count(user.id),
        )
        for user in users
    ]


@api_router.put("/users/me", response_model=UserPublic)
async def update_current_user(
    user_update: UserUpdate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    update_data = {k: v for k, v in user_update.model_dump().items() if v is not None}
    if not update_data:
        return UserPublic.from_user(current_user)
    updated_user = await storage.update_user(current_user.id, update_data)
    return UserPublic.from_user(updated_user)


@api_router.get("/users/{user_id}", response_model=UserPublic)
async def get_user(user_id: str, storage: Storage = Depends(get_storage)):
    return UserPublic.from_user(await require_user(storage, user_id))


@api_router.get("/users/{user_id}/stats", response_model=UserStats)
async def get_user_stats(user_id: str, storage: Storage = Depends(get_storage)):
    await require_user(storage, user_id)
    return await user_stats(storage, user_id)


@api_router.get("/users/{user_id}/follow-status")
async def get_follow_status(
    user_id: str,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    return {"following": await storage.is_following(current_user.id, user_id)}


@api_router.post("/users/{user_id}/follow")
async def follow_user(
    user_id: str,
    payload: Optional[FollowRequest] = None,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot follow yourself")
    await require_user(storage, user_id)

    follow = payload.followed if payload and payload.followed is not None else None
    if follow is None:
        follow = not await storage.is_following(current_user.id, user_id)

    if follow:
        if await storage.follow_user(current_user.id, user_id):
            await storage.notify(
                user_id, "follow",
                f"{current_user.display_name} started following you",
                from_user_id=current_user.id,
                entity_id=current_user.id,
            )
    else:
        await storage.unfollow_user(current_user.id, user_id)

    return {
        "following": follow,
        "followers_count": await storage.get_followers_count(user_id),
    }


@api_router.get("/profile", response_model=UserProfile)
async def get_profile(current_user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    stats = await user_stats(storage, current_user.id)
    return UserProfile(
        id=current_user.id,
        email=current_user.email,
        username=current_user.display_username,
        display_name=current_user.display_name,
        profile_image_url=current_user.profile_image_url,
        bio=current_user.bio,
        location=current_user.location,
        website=current_user.website,
        github=current_user.github,
        twitter=current_user.twitter,
        joined_at=current_user.created_at,
        **stats.model_dump(),
    )


@api_router.get("/suggested-users", response_model=List[Author])
async def get_suggested_users(
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    return [Author.from_user(user) for user in await storage.get_suggested_users(current_user.id)]


# Post routes
@api_router.get("/posts", response_model=List[PostWithUser])
async def get_posts(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    viewer: Optional[User] = Depends(get_optional_user),
    storage: Storage = Depends(get_storage)
):
    posts = await storage.get_all_posts(limit=limit, offset=offset)
    return await enrich_posts(storage, posts, viewer)


@api_router.get("/posts/trending", response_model=List[PostWithUser])
async def get_trending_posts(
    viewer: Optional[User] = Depends(get_optional_user),
    storage: Storage = Depends(get_storage)
):
    return await enrich_posts(storage, await storage.get_trending_posts(), viewer)


@api_router.get("/posts/latest", response_model=List[PostWithUser])
async def get_latest_posts(
    viewer: Optional[User] = Depends(get_optional_user),
    storage: Storage = Depends(get_storage)
):
    return await enrich_posts(storage, await storage.get_latest_posts(), viewer)


@api_router.get("/posts/search", response_model=List[PostWithUser])
async def search_posts(
    q: str = "",
    viewer: Optional[User] = Depends(get_optional_user),
    storage: Storage = Depends(get_storage)
):
    if not q.strip():
        return []
    return await enrich_posts(storage, await storage.search_posts(q.strip()), viewer)


@api_router.get("/posts/user/{user_id}", response_model=List[PostWithUser])
async def get_posts_by_user(
    user_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    storage: Storage = Depends(get_storage)
):
    return await enrich_posts(storage, await storage.get_user_posts(user_id), viewer)


@api_router.post("/posts", response_model=PostWithUser, status_code=201)
async def create_post(
    post_data: PostCreate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    post = Post(user_id=current_user.id, **post_data.model_dump())
    await storage.create_post(post)
    return await enrich_post(storage, post, current_user)


@api_router.get("/posts/{post_id}", response_model=PostWithUser)
async def get_post(
    post_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    storage: Storage = Depends(get_storage)
):
    return await enrich_post(storage, await require_post(storage, post_id), viewer)


@api_router.delete("/posts/{post_id}")
async def delete_post(
    post_id: str,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    post = await require_post(storage, post_id)
    if post.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not authorized to delete this post")
    await storage.delete_post(post_id)
    return {"success": True}


# Like and bookmark routes
@api_router.post("/posts/{post_id}/like")
async def like_post(
    post_id: str,
    payload: Optional[LikeRequest] = None,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    post = await require_post(storage, post_id)

    liked = payload.liked if payload and payload.liked is not None else None
    if liked is None:
        liked = not await storage.is_post_liked_by_user(post_id, current_user.id)

    if liked:
        if await storage.like_post(post_id, current_user.id):
            await storage.notify(
                post.user_id, "like",
                f"{current_user.display_name} liked your post",
                from_user_id=current_user.id,
                entity_id=post_id,
            )
    else:
        await storage.unlike_post(post_id, current_user.id)

    post = await storage.get_post(post_id)
    return {"success": True, "liked": liked, "likes_count": post.likes_count}


@api_router.post("/posts/{post_id}/bookmark")
async def bookmark_post(
    post_id: str,
    payload: Optional[BookmarkRequest] = None,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    await require_post(storage, post_id)

    bookmarked = payload.bookmarked if payload and payload.bookmarked is not None else None
    if bookmarked is None:
        bookmarked = not await storage.is_post_bookmarked_by_user(post_id, current_user.id)

    if bookmarked:
        await storage.bookmark_post(post_id, current_user.id)
    else:
        await storage.unbookmark_post(post_id, current_user.id)
    return {"success": True, "bookmarked": bookmarked}


# Comment routes
@api_router.post("/posts/{post_id}/comments", response_model=CommentWithUser, status_code=201)
async def create_comment(
    post_id: str,
    comment_data: CommentCreate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    post = await require_post(storage, post_id)
    comment = Comment(post_id=post_id, user_id=current_user.id, content=comment_data.content)
    await storage.create_comment(comment)
    await storage.notify(
        post.user_id, "comment",
        f"{current_user.display_name} commented on your post",
        from_user_id=current_user.id,
        entity_id=post_id,
    )
    return CommentWithUser(**comment.model_dump(), user=Author.from_user(current_user))


@api_router.get("/posts/{post_id}/comments", response_model=List[CommentWithUser])
async def get_comments(
    post_id: str,
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    storage: Storage = Depends(get_storage)
):
    comments = await storage.get_comments(post_id, limit=limit, offset=offset)
    return [
        CommentWithUser(
            **comment.model_dump(),
            user=Author.from_user(await storage.get_user(comment.user_id), comment.user_id),
        )
        for comment in comments
    ]


# Current user's post lists
@api_router.get("/user/posts", response_model=List[PostWithUser])
async def get_my_posts(current_user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return await enrich_posts(storage, await storage.get_user_posts(current_user.id), current_user)


@api_router.get("/user/liked-posts", response_model=List[PostWithUser])
async def get_liked_posts(current_user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return await enrich_posts(storage, await storage.get_user_liked_posts(current_user.id), current_user)


@api_router.get("/user/bookmarks", response_model=List[PostWithUser])
async def get_bookmarked_posts(
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    return await enrich_posts(storage, await storage.get_user_bookmarked_posts(current_user.id), current_user)


# Code snippet routes
@api_router.get("/snippets/my", response_model=List[CodeSnippet])
async def get_my_snippets(current_user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return await storage.get_user_code_snippets(current_user.id)


@api_router.get("/snippets/public", response_model=List[CodeSnippet])
async def get_public_snippets(storage: Storage = Depends(get_storage)):
    return await storage.get_public_code_snippets()


@api_router.get("/snippets/user/{user_id}", response_model=List[CodeSnippet])
async def get_user_snippets(
    user_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    storage: Storage = Depends(get_storage)
):
    snippets = await storage.get_user_code_snippets(user_id)
    if viewer and viewer.id == user_id:
        return snippets
    return [snippet for snippet in snippets if snippet.is_public]


@api_router.post("/snippets", response_model=CodeSnippet, status_code=201)
async def create_snippet(
    snippet_data: CodeSnippetCreate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    snippet = CodeSnippet(user_id=current_user.id, **snippet_data.model_dump())
    return await storage.create_code_snippet(snippet)


async def require_own_snippet(storage: Storage, snippet_id: str, user: User, action: str) -> CodeSnippet:
    snippet = await storage.get_code_snippet(snippet_id)
    if not snippet or snippet.user_id != user.id:
        raise HTTPException(status_code=403, detail=f"Not authorized to {action} this snippet")
    return snippet


@api_router.put("/snippets/{snippet_id}", response_model=CodeSnippet)
async def update_snippet(
    snippet_id: str,
    snippet_data: CodeSnippetCreate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    await require_own_snippet(storage, snippet_id, current_user, "update")
    return await storage.update_code_snippet(snippet_id, snippet_data.model_dump())


@api_router.delete("/snippets/{snippet_id}")
async def delete_snippet(
    snippet_id: str,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    await require_own_snippet(storage, snippet_id, current_user, "delete")
    await storage.delete_code_snippet(snippet_id)
    return {"success": True}


# Trending topics and hashtags
@api_router.get("/trending-topics", response_model=List[TrendingTopic])
async def get_trending_topics(
    limit: Optional[int] = Query(None, ge=1),
    storage: Storage = Depends(get_storage)
):
    return await storage.get_trending_topics(limit=limit)


@api_router.get("/hashtags/search", response_model=List[TrendingTopic])
async def search_hashtags(q: str = "", storage: Storage = Depends(get_storage)):
    return await storage.search_hashtags(q)


# Notification routes
@api_router.get("/notifications", response_model=List[NotificationWithUser])
async def get_notifications(
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    result = []
    for notification in await storage.get_notifications(current_user.id):
        from_user = None
        if notification.from_user_id:
            sender = await storage.get_user(notification.from_user_id)
            from_user = Author.from_user(sender, notification.from_user_id)
        result.append(NotificationWithUser(**notification.model_dump(), from_user=from_user))
    return result


@api_router.get("/notifications/count", response_model=NotificationCount)
async def get_notification_count(
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    return NotificationCount(count=await storage.get_unread_count(current_user.id))


@api_router.put("/notifications/read-all")
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    updated = await storage.mark_all_notifications_read(current_user.id)
    return {"success": True, "updated": updated}


@api_router.put("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    if not await storage.mark_notification_read(notification_id, current_user.id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"success": True}


# AI routes
@api_router.post("/ai/suggest", response_model=AiSuggestion)
async def ai_suggest(
    payload: AiPrompt,
    current_user: User = Depends(get_current_user),
    assistant: AiAssistant = Depends(get_assistant)
):
    if not payload.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")
    return AiSuggestion(suggestion=await assistant.generate_suggestion(payload.prompt))


@api_router.post("/ai/analyze", response_model=PostAnalysis)
async def ai_analyze(payload: AnalyzeRequest, current_user: User = Depends(get_current_user)):
    return analyze_post(payload.content)


@api_router.get("/ai/content-ideas", response_model=List[str])
async def ai_content_ideas(
    count: int = Query(5, ge=1),
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    topics = [topic.name.lstrip('#') for topic in await storage.get_trending_topics(limit=3)]
    return generate_content_ideas(topics, count)


@api_router.get("/ai/recommendations", response_model=List[PostWithUser])
async def ai_recommendations(
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    # Interests come from what the user writes and likes
    own_posts = await storage.get_user_posts(current_user.id)
    liked_posts = await storage.get_user_liked_posts(current_user.id)
    interests = []
    for post in own_posts + liked_posts:
        interests.extend(post_hashtags(post))
        interests.extend(analyze_post(post.content).topics)

    candidates = [post for post in await storage.get_all_posts() if post.user_id != current_user.id]
    recommended = get_ai_recommendations(list(dict.fromkeys(i.lower() for i in interests)), candidates)
    return await enrich_posts(storage, recommended, current_user)


# Health check
@api_router.get("/")
async def root():
    return {"message": "DevStream API is running"}


# Include the routers in the main app
app.include_router(api_router)
app.include_router(work_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = id(exc)
    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_id": error_id},
    )


@app.on_event("startup")
async def seed_data():
    if config.SEED_ADMIN:
        await seed_default_admin(get_storage())


@app.on_event("shutdown")
async def shutdown_storage():
    await close_storage()
