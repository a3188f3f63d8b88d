"""Work module: job listings, resumes, and the apply / offer flow between them."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from .auth import get_current_user, get_optional_user
from .deps import get_storage
from .models import (
    ApplicationCheck,
    ApplicationCreate,
    ApplicationStatusUpdate,
    Author,
    Job,
    JobApplication,
    JobCreate,
    JobFilters,
    JobOffer,
    JobUpdate,
    JobWithPoster,
    OfferCreate,
    OfferResponse,
    Resume,
    ResumeCreate,
    ResumeUpdate,
    ResumeWithUser,
    User,
)
from .storage import Storage

work_router = APIRouter(prefix="/api")

ANY = "all"


def _filter_value(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip() or value.strip().lower() == ANY:
        return None
    return value.strip()


def _remote_filter(value: Optional[str]) -> Optional[bool]:
    value = (value or "").strip().lower()
    if value in ("remote", "true", "1", "yes"):
        return True
    if value in ("office", "false", "0", "no"):
        return False
    return None


async def _author(storage: Storage, user_id: str) -> Author:
    return Author.from_user(await storage.get_user(user_id), user_id)


async def with_poster(storage: Storage, job: Job) -> JobWithPoster:
    return JobWithPoster(**job.model_dump(), poster=await _author(storage, job.user_id))


async def with_user(storage: Storage, resume: Resume) -> ResumeWithUser:
    return ResumeWithUser(**resume.model_dump(), user=await _author(storage, resume.user_id))


async def require_job(storage: Storage, job_id: str) -> Job:
    job = await storage.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


async def require_own_job(storage: Storage, job_id: str, user: User) -> Job:
    job = await require_job(storage, job_id)
    if job.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not authorized to manage this job")
    return job


async def require_resume(storage: Storage, resume_id: str, viewer: Optional[User] = None) -> Resume:
    resume = await storage.get_resume(resume_id)
    # Hidden resumes are visible to their owner only
    if not resume or (not resume.is_visible and (viewer is None or viewer.id != resume.user_id)):
        raise HTTPException(status_code=404, detail="Resume not found")
    return resume


async def require_own_resume(storage: Storage, resume_id: str, user: User) -> Resume:
    resume = await require_resume(storage, resume_id, user)
    if resume.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not authorized to manage this resume")
    return resume


# Job routes
@work_router.get("/jobs", response_model=List[JobWithPoster])
async def get_jobs(storage: Storage = Depends(get_storage)):
    return [await with_poster(storage, job) for job in await storage.get_jobs()]


@work_router.get("/jobs/search", response_model=List[JobWithPoster])
async def search_jobs(
    q: Optional[str] = None,
    location: Optional[str] = None,
    experience_level: Optional[str] = None,
    employment_type: Optional[str] = None,
    is_remote: Optional[str] = None,
    storage: Storage = Depends(get_storage)
):
    filters = JobFilters(
        term=_filter_value(q),
        location=_filter_value(location),
        experience_level=_filter_value(experience_level),
        employment_type=_filter_value(employment_type),
        is_remote=_remote_filter(is_remote),
    )
    return [await with_poster(storage, job) for job in await storage.search_jobs(filters)]


@work_router.post("/jobs", response_model=JobWithPoster, status_code=201)
async def create_job(
    job_data: JobCreate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    job = await storage.create_job(Job(user_id=current_user.id, **job_data.model_dump()))
    return await with_poster(storage, job)


@work_router.get("/jobs/{job_id}", response_model=JobWithPoster)
async def get_job(job_id: str, storage: Storage = Depends(get_storage)):
    return await with_poster(storage, await require_job(storage, job_id))


@work_router.put("/jobs/{job_id}", response_model=JobWithPoster)
async def update_job(
    job_id: str,
    job_update: JobUpdate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    job = await require_own_job(storage, job_id, current_user)
    update_data = job_update.model_dump(exclude_unset=True)
    if update_data:
        job = await storage.update_job(job_id, update_data)
    return await with_poster(storage, job)


@work_router.delete("/jobs/{job_id}")
async def delete_job(
    job_id: str,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    await require_own_job(storage, job_id, current_user)
    await storage.delete_job(job_id)
    return {"success": True}


@work_router.get("/user/jobs", response_model=List[JobWithPoster])
async def get_my_jobs(current_user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return [await with_poster(storage, job) for job in await storage.get_user_jobs(current_user.id)]


# Resume routes
@work_router.get("/resumes", response_model=List[ResumeWithUser])
async def get_resumes(storage: Storage = Depends(get_storage)):
    return [await with_user(storage, resume) for resume in await storage.get_resumes()]


@work_router.get("/resumes/search", response_model=List[ResumeWithUser])
async def search_resumes(q: str = "", storage: Storage = Depends(get_storage)):
    return [await with_user(storage, resume) for resume in await storage.search_resumes(q)]


@work_router.post("/resumes", response_model=ResumeWithUser, status_code=201)
async def create_resume(
    resume_data: ResumeCreate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    resume = await storage.create_resume(Resume(user_id=current_user.id, **resume_data.model_dump()))
    return await with_user(storage, resume)


@work_router.get("/resumes/{resume_id}", response_model=ResumeWithUser)
async def get_resume(
    resume_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    storage: Storage = Depends(get_storage)
):
    return await with_user(storage, await require_resume(storage, resume_id, viewer))


@work_router.put("/resumes/{resume_id}", response_model=ResumeWithUser)
async def update_resume(
    resume_id: str,
    resume_update: ResumeUpdate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    resume = await require_own_resume(storage, resume_id, current_user)
    update_data = resume_update.model_dump(exclude_unset=True)
    if update_data:
        resume = await storage.update_resume(resume_id, update_data)
    return await with_user(storage, resume)


@work_router.delete("/resumes/{resume_id}")
async def delete_resume(
    resume_id: str,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    await require_own_resume(storage, resume_id, current_user)
    await storage.delete_resume(resume_id)
    return {"success": True}


@work_router.get("/user/resumes", response_model=List[ResumeWithUser])
async def get_my_resumes(current_user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return [await with_user(storage, resume) for resume in await storage.get_user_resumes(current_user.id)]


# Application routes
@work_router.post("/jobs/{job_id}/apply", response_model=JobApplication, status_code=201)
async def apply_to_job(
    job_id: str,
    payload: ApplicationCreate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    job = await require_job(storage, job_id)
    if job.user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot apply to your own job")

    resume = await storage.get_resume(payload.resume_id)
    if not resume or resume.user_id != current_user.id:
        raise HTTPException(status_code=400, detail="Resume does not belong to you")

    if await storage.get_application_for(job_id, current_user.id):
        raise HTTPException(status_code=409, detail="You have already applied to this job")

    application = await storage.create_application(JobApplication(
        job_id=job_id,
        resume_id=resume.id,
        applicant_id=current_user.id,
        cover_letter=payload.cover_letter,
    ))
    await storage.notify(
        job.user_id, "application",
        f"{current_user.display_name} applied to {job.title}",
        from_user_id=current_user.id,
        entity_id=application.id,
    )
    return application


@work_router.get("/applications/check/{job_id}", response_model=ApplicationCheck)
async def check_application(
    job_id: str,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    application = await storage.get_application_for(job_id, current_user.id)
    return ApplicationCheck(has_applied=application is not None, application=application)


@work_router.get("/user/applications", response_model=List[JobApplication])
async def get_my_applications(
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    return await storage.get_user_applications(current_user.id)


@work_router.get("/jobs/{job_id}/applications", response_model=List[JobApplication])
async def get_job_applications(
    job_id: str,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    await require_own_job(storage, job_id, current_user)
    return await storage.get_job_applications(job_id)


@work_router.put("/applications/{application_id}/status", response_model=JobApplication)
async def update_application_status(
    application_id: str,
    payload: ApplicationStatusUpdate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    application = await storage.get_application(application_id)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    job = await require_own_job(storage, application.job_id, current_user)

    application = await storage.update_application_status(application_id, payload.status)
    await storage.notify(
        application.applicant_id, "application",
        f"Your application to {job.title} was {payload.status}",
        from_user_id=current_user.id,
        entity_id=application.id,
    )
    return application


# Offer routes
@work_router.post("/resumes/{resume_id}/offer", response_model=JobOffer, status_code=201)
async def offer_job(
    resume_id: str,
    payload: OfferCreate,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    resume = await require_resume(storage, resume_id, current_user)
    if resume.user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot offer a job to yourself")

    job = await require_job(storage, payload.job_id)
    if job.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="You can only offer your own jobs")

    if await storage.get_offer_for(resume_id, job.id):
        raise HTTPException(status_code=409, detail="This job was already offered for this resume")

    offer = await storage.create_offer(JobOffer(
        job_id=job.id,
        resume_id=resume_id,
        employer_id=current_user.id,
        candidate_id=resume.user_id,
        message=payload.message,
    ))
    await storage.notify(
        resume.user_id, "offer",
        f"{current_user.display_name} offered you {job.title} at {job.company}",
        from_user_id=current_user.id,
        entity_id=offer.id,
    )
    return offer


@work_router.get("/user/offers", response_model=List[JobOffer])
async def get_received_offers(
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    return await storage.get_received_offers(current_user.id)


@work_router.get("/user/offers/sent", response_model=List[JobOffer])
async def get_sent_offers(current_user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return await storage.get_sent_offers(current_user.id)


@work_router.put("/offers/{offer_id}/respond", response_model=JobOffer)
async def respond_to_offer(
    offer_id: str,
    payload: OfferResponse,
    current_user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    offer = await storage.get_offer(offer_id)
    if not offer or offer.candidate_id != current_user.id:
        raise HTTPException(status_code=404, detail="Offer not found")

    offer = await storage.update_offer_status(offer_id, payload.status)
    await storage.notify(
        offer.employer_id, "offer",
        f"{current_user.display_name} {payload.status} your offer",
        from_user_id=current_user.id,
        entity_id=offer.id,
    )
    return offer
