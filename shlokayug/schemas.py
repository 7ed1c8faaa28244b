"""
Request schemas for the ShlokaYug API

Each Pydantic model validates one request body. Documents are stored in
Firestore as plain dicts built by the service modules from these models.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EMAIL_PATTERN = r'^[^\s@]+@[^\s@]+\.[^\s@]+$'
USERNAME_PATTERN = r'^[A-Za-z0-9_]+$'
PHONE_PATTERN = r'^\+?[1-9]\d{0,15}$'

CATEGORIES = (
    'vedic_chanting', 'sanskrit_language', 'philosophy', 'rituals_ceremonies',
    'yoga_meditation', 'ayurveda', 'music_arts', 'scriptures', 'other'
)
INTERESTS = (
    'vedic_chanting', 'sanskrit_grammar', 'shloka_composition', 'chandas_prosody',
    'classical_texts', 'bhagavad_gita', 'ramayana', 'mahabharata', 'upanishads',
    'puranas', 'ayurveda', 'yoga_philosophy', 'meditation', 'music', 'philosophy', 'other'
)

Category = Literal[CATEGORIES]
Level = Literal['beginner', 'intermediate', 'advanced', 'expert']
Currency = Literal['INR', 'USD', 'EUR']


class RequestModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra='ignore', populate_by_name=True)


def parse(model, data):
    """Validate a request body; pydantic.ValidationError becomes a 400"""
    return model.model_validate(data or {})


# ── Auth ──

class RegisterRequest(RequestModel):
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=50, alias='firstName')
    last_name: str = Field(..., min_length=1, max_length=50, alias='lastName')

    @field_validator('email')
    @classmethod
    def lower_email(cls, value):
        return value.lower()


class LoginRequest(RequestModel):
    identifier: str = Field(..., min_length=1, description="Email or username")
    password: str = Field(..., min_length=1)


class RefreshRequest(RequestModel):
    refresh_token: str = Field(..., min_length=1, alias='refreshToken')


class TokenRequest(RequestModel):
    token: str = Field(..., min_length=1)


class ForgotPasswordRequest(RequestModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)


class ResetPasswordRequest(RequestModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)


class ChangePasswordRequest(RequestModel):
    current_password: str = Field(..., min_length=1, alias='currentPassword')
    new_password: str = Field(..., min_length=8, max_length=128, alias='newPassword')


class ProfileUpdate(RequestModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50, alias='firstName')
    last_name: Optional[str] = Field(None, min_length=1, max_length=50, alias='lastName')
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None
    phone_number: Optional[str] = Field(None, pattern=PHONE_PATTERN, alias='phoneNumber')
    interests: Optional[List[Literal[INTERESTS]]] = None


# ── Courses ──

class Money(RequestModel):
    amount: float = Field(0, ge=0, le=100000)
    currency: Currency = 'INR'


class SubscriptionPricing(RequestModel):
    monthly: Optional[Money] = None
    yearly: Optional[Money] = None


class Pricing(RequestModel):
    type: Literal['free', 'one_time', 'subscription'] = 'free'
    one_time: Optional[Money] = Field(None, alias='oneTime')
    subscription: Optional[SubscriptionPricing] = None


class CourseCreate(RequestModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    short_description: Optional[str] = Field(None, max_length=500, alias='shortDescription')
    category: Category
    level: Level
    language: Literal['english', 'hindi', 'sanskrit', 'tamil', 'mixed'] = 'english'
    tags: List[str] = Field(default_factory=list, max_length=10)
    pricing: Pricing = Field(default_factory=Pricing)


class CourseUpdate(RequestModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    short_description: Optional[str] = Field(None, max_length=500, alias='shortDescription')
    category: Optional[Category] = None
    level: Optional[Level] = None
    language: Optional[Literal['english', 'hindi', 'sanskrit', 'tamil', 'mixed']] = None
    tags: Optional[List[str]] = Field(None, max_length=10)
    pricing: Optional[Pricing] = None
    featured: Optional[bool] = None


class UnitCreate(RequestModel):
    title: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=1000)
    order: Optional[int] = Field(None, ge=1)


class LessonCreate(UnitCreate):
    pass


class Resource(RequestModel):
    type: Literal['pdf', 'audio', 'image', 'text', 'link']
    title: str = Field(..., min_length=1, max_length=100)
    url: str = Field(..., min_length=1)


class LectureCreate(RequestModel):
    title: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=1000)
    order: Optional[int] = Field(None, ge=1)
    type: Literal['video', 'audio', 'text', 'quiz'] = 'video'
    duration: float = Field(0, ge=0, description="Duration in minutes")
    content_url: Optional[str] = Field(None, alias='contentUrl')
    resources: List[Resource] = Field(default_factory=list)
    is_free_preview: bool = Field(False, alias='isFreePreview')


class LectureUpdate(RequestModel):
    title: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=1000)
    order: Optional[int] = Field(None, ge=1)
    type: Optional[Literal['video', 'audio', 'text', 'quiz']] = None
    duration: Optional[float] = Field(None, ge=0)
    content_url: Optional[str] = Field(None, alias='contentUrl')
    resources: Optional[List[Resource]] = None
    is_free_preview: Optional[bool] = Field(None, alias='isFreePreview')


# ── Enrollments & payments ──

class EnrollRequest(RequestModel):
    course_id: str = Field(..., min_length=1, alias='courseId')


class InitiateEnrollmentRequest(EnrollRequest):
    plan: Literal['one_time', 'monthly', 'yearly'] = 'one_time'


class PaymentVerification(RequestModel):
    order_id: str = Field(..., min_length=1, alias='razorpay_order_id')
    payment_id: str = Field(..., min_length=1, alias='razorpay_payment_id')
    signature: str = Field(..., min_length=1, alias='razorpay_signature')


class LectureCompleteRequest(RequestModel):
    course_id: str = Field(..., min_length=1, alias='courseId')
    lecture_id: str = Field(..., min_length=1, alias='lectureId')


class BookmarkRequest(LectureCompleteRequest):
    timestamp: int = Field(0, ge=0, description="Position in the lecture, in seconds")
    note: Optional[str] = Field(None, max_length=500)


class SubscriptionCancelRequest(RequestModel):
    reason: Literal[
        'too_expensive', 'not_using', 'technical_issues', 'content_quality',
        'found_alternative', 'temporary_break', 'other'
    ]
    immediate: bool = False
    feedback: Optional[str] = Field(None, max_length=500)


class SubscriptionRenewRequest(RequestModel):
    plan: Optional[Literal['monthly', 'yearly']] = None


class RatingRequest(RequestModel):
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = Field(None, max_length=1000)


class RefundRequest(RequestModel):
    reason: str = Field('requested_by_admin', max_length=500)


# ── Videos ──

class VideoUploadForm(RequestModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field('', max_length=2000)
    category: Optional[str] = Field(None, max_length=50)
    tags: List[str] = Field(default_factory=list, max_length=20)
    visibility: Literal['public', 'unlisted', 'private'] = 'public'
    course_id: Optional[str] = Field(None, alias='courseId')
    lecture_id: Optional[str] = Field(None, alias='lectureId')

    @field_validator('tags', mode='before')
    @classmethod
    def split_tags(cls, value):
        if isinstance(value, str):
            return [tag.strip().lower() for tag in value.split(',') if tag.strip()]
        return value

    @model_validator(mode='after')
    def lecture_needs_course(self):
        if self.lecture_id and not self.course_id:
            raise ValueError('courseId is required when lectureId is given')
        return self


class CommentCreate(RequestModel):
    text: str = Field(..., min_length=1, max_length=1000)


# ── Community ──

class ShlokaBlock(RequestModel):
    text: str = Field(..., min_length=1, max_length=2000)
    transliteration: Optional[str] = Field(None, max_length=2000)
    translation: Optional[str] = Field(None, max_length=2000)
    chandas: Optional[str] = Field(None, max_length=50, description="Metre, e.g. anushtubh")
    source: Optional[str] = Field(None, max_length=200)


class PostCreate(RequestModel):
    content: str = Field(..., min_length=1, max_length=2000)
    type: Literal['post', 'shloka', 'question'] = 'post'
    shloka: Optional[ShlokaBlock] = None

    @model_validator(mode='after')
    def shloka_block_required(self):
        if self.type == 'shloka' and self.shloka is None:
            raise ValueError('shloka posts need a shloka block')
        return self


class ReportRequest(RequestModel):
    reason: str = Field(..., min_length=1, max_length=500)


# ── Guru verification & admin ──

class Credential(RequestModel):
    title: str = Field(..., min_length=1, max_length=200)
    institution: str = Field(..., min_length=1, max_length=200)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    description: Optional[str] = Field(None, max_length=500)
    document_url: Optional[str] = Field(None, alias='documentUrl')


class GuruApplication(RequestModel):
    credentials: List[Credential] = Field(..., min_length=1)
    experience_years: int = Field(..., ge=0, le=80, alias='experienceYears')
    expertise: List[Literal[CATEGORIES]] = Field(..., min_length=1)
    specializations: List[str] = Field(default_factory=list, max_length=10)
    motivation: str = Field(..., min_length=50, max_length=2000)


class ReviewNotes(RequestModel):
    notes: str = Field('', max_length=1000)


class RejectRequest(RequestModel):
    reason: str = Field(..., min_length=1, max_length=1000, alias='rejectionReason')


class GuruStatusRequest(RequestModel):
    action: Literal['suspend', 'activate']
    reason: str = Field('', max_length=1000)


class NoteRequest(RequestModel):
    note: str = Field(..., min_length=1, max_length=1000)


class ModerateUserRequest(RequestModel):
    action: Literal['ban', 'unban', 'deactivate', 'activate']
    reason: str = Field('', max_length=500)
    days: Optional[int] = Field(None, ge=1, le=3650)


class ModeratePostRequest(RequestModel):
    action: Literal['hide', 'restore', 'delete']
    reason: str = Field('', max_length=500)
