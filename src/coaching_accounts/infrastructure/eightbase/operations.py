"""GraphQL documents issued against the 8base workspace."""

USER_FIELDS = """
fragment UserFields on User {
  id
  email
  firstName
  lastName
  isActive
  createdAt
  updatedAt
  roles {
    items {
      id
      name
    }
  }
}
"""

INVITATION_FIELDS = """
fragment InvitationFields on Invitation {
  id
  userId
  email
  role
  invitedBy
  emailSent
  messageId
  status
  createdAt
}
"""

CREATE_USER = (
    """
mutation CreateUser($data: UserCreateInput!) {
  userCreate(data: $data) {
    ...UserFields
  }
}
"""
    + USER_FIELDS
)

USERS_BY_FILTER = (
    """
query UsersByFilter($filter: UserFilter!) {
  usersList(filter: $filter, first: 1) {
    items {
      ...UserFields
    }
  }
}
"""
    + USER_FIELDS
)

LIST_USERS = (
    """
query ListUsers($first: Int!, $skip: Int!) {
  usersList(first: $first, skip: $skip, sort: { createdAt: DESC }) {
    count
    items {
      ...UserFields
    }
  }
}
"""
    + USER_FIELDS
)

SET_USER_ACTIVE = (
    """
mutation SetUserActive($id: ID!, $isActive: Boolean!) {
  userUpdate(filter: { id: $id }, data: { isActive: $isActive }) {
    ...UserFields
  }
}
"""
    + USER_FIELDS
)

CREATE_STUDENT = """
mutation CreateStudent($data: StudentCreateInput!) {
  studentCreate(data: $data) {
    id
  }
}
"""

CREATE_COACH = """
mutation CreateCoach($data: CoachCreateInput!) {
  coachCreate(data: $data) {
    id
  }
}
"""

STUDENT_BY_USER = """
query StudentByUser($userId: ID!) {
  studentsList(filter: { user: { id: { equals: $userId } } }, first: 1) {
    items {
      id
    }
  }
}
"""

CONNECT_STUDENT_COACH = """
mutation ConnectStudentCoach($id: ID!, $coachId: ID!) {
  studentUpdate(filter: { id: $id }, data: { coach: { connect: { id: $coachId } } }) {
    id
  }
}
"""

CREATE_INVITATION = (
    """
mutation CreateInvitation($data: InvitationCreateInput!) {
  invitationCreate(data: $data) {
    ...InvitationFields
  }
}
"""
    + INVITATION_FIELDS
)

LATEST_INVITATION = (
    """
query LatestInvitation($userId: String!) {
  invitationsList(
    filter: { userId: { equals: $userId } }
    sort: { createdAt: DESC }
    first: 1
  ) {
    items {
      ...InvitationFields
    }
  }
}
"""
    + INVITATION_FIELDS
)

SET_INVITATION_STATUS = (
    """
mutation SetInvitationStatus($id: ID!, $status: String!) {
  invitationUpdate(filter: { id: $id }, data: { status: $status }) {
    ...InvitationFields
  }
}
"""
    + INVITATION_FIELDS
)
