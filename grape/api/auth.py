from fastapi import APIRouter, status

from grape.api.dependencies import CurrentUser, Users
from grape.core.auth import create_access_token
from grape.schemas.schemas import AuthResponse, LoginRequest, MeResponse, SignupRequest, UserResponse

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(user) -> AuthResponse:
    return AuthResponse(
        user=UserResponse(
            id=user.id,
            username=user.username,
            email=user.email,
            bio=user.bio,
            profile_pic_url=user.profile_pic_url,
            created_at=user.created_at,
        ),
        token=create_access_token(user.id),
    )


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(signup_data: SignupRequest, users: Users) -> AuthResponse:
    """
    Register a new user.

    Parameters:
    - **signup_data**: username, email and password

    Returns:
    - **AuthResponse**: The new user and a bearer token

    Raises:
    - **400 Bad Request**: If the username or email is already registered
    - **422 Unprocessable Entity**: If a field fails validation
    """
    user = await users.create_user(
        username=signup_data.username,
        email=signup_data.email,
        password=signup_data.password,
    )
    return _auth_response(user)


@router.post("/login", status_code=status.HTTP_200_OK)
async def login(login_data: LoginRequest, users: Users) -> AuthResponse:
    """
    Authenticate with email and password.

    Raises:
    - **401 Unauthorized**: If credentials are invalid
    """
    user = await users.authenticate(login_data.email, login_data.password)
    return _auth_response(user)


@router.get("/me", status_code=status.HTTP_200_OK)
async def get_current_user_info(current_user: CurrentUser, users: Users) -> MeResponse:
    """
    Get the currently authenticated user's profile with live counts.

    Raises:
    - **401 Unauthorized**: If not authenticated
    """
    return await users.get_me(current_user)
